from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

import config
from utilities.exceptions import LedgerError, PersistenceError

if not config.DATABASE_URL:
    raise ValueError("DATABASE_URL is not set in .env file.")

# Create an async engine
engine = create_async_engine(config.DATABASE_URL, echo=False, poolclass=NullPool)

# Create a sessionmaker for async sessions
async_session = async_sessionmaker(
    bind=engine,
    expire_on_commit=False,
    class_=AsyncSession
)


@asynccontextmanager
async def get_session() -> AsyncSession:
    """
    Provide a database session in an async context manager.
    """
    async with async_session() as session:
        yield session


@asynccontextmanager
async def session_scope(session: AsyncSession | None = None):
    """
    Provide a unit of work.

    When ``session`` is given the caller owns the transaction and nothing is
    committed here. Otherwise a new session is opened and committed on exit,
    or rolled back in full if anything inside raises.

    Args:
        session (AsyncSession | None): An open session to join.

    Raises:
        PersistenceError: If the storage layer fails inside a new unit of work.
    """
    if session is not None:
        yield session
        return

    async with async_session() as new_session:
        try:
            async with new_session.begin():
                yield new_session
        except LedgerError:
            raise
        except SQLAlchemyError as e:
            raise PersistenceError(f"Database transaction failed: {e}") from e
