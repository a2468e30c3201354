import asyncio
import logging

from db import engine
from models import Base
from utilities.logsetup import setup_logging

logger = logging.getLogger(__name__)


# Create tables asynchronously
async def create_tables():
    # Every model is imported by the models package, so the metadata is complete
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Created tables: %s", ", ".join(Base.metadata.tables))


async def drop_tables():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    logger.info("Dropped all tables")


# Run the function asynchronously
if __name__ == "__main__":
    setup_logging()
    asyncio.run(create_tables())
