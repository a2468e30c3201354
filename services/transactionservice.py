import uuid
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.future import select

from db import session_scope
from models.transaction import Transaction


class TransactionService:

    @staticmethod
    async def create_transaction(sender_account_id: int, receiver_account_id: int, amount: Decimal, session=None):
        """
        Creates a new transaction in the database.

        Args:
            sender_account_id (int): The ID of the sender's account.
            receiver_account_id (int): The ID of the receiver's account.
            amount (Decimal): The transaction amount.
            session (AsyncSession | None): Optional session to join.

        Returns:
            Transaction: The created Transaction object.
        """
        async with session_scope(session) as session:
            new_transaction = Transaction(
                uuid=str(uuid.uuid4()),
                sender_account_id=sender_account_id,
                receiver_account_id=receiver_account_id,
                amount=amount
            )
            session.add(new_transaction)
            await session.flush()
            return new_transaction

    @staticmethod
    async def read_transaction_by_uuid(transaction_uuid: str):
        """
        Retrieves a transaction by its UUID from the database.

        Args:
            transaction_uuid (str): The UUID of the transaction to retrieve.

        Returns:
            Transaction or None: The Transaction object if found, otherwise None.
        """
        async with session_scope() as session:
            result = await session.execute(select(Transaction).filter(Transaction.uuid == transaction_uuid))
            return result.scalars().first()

    @staticmethod
    async def get_transactions_by_account(account_id: int, page: int = 1, limit: int = 10, recent: bool = True):
        """
        Retrieves transactions for a specific account with pagination, sorted by date.

        Args:
            account_id (int): The account ID to retrieve transactions for.
            page (int, optional): The page number for pagination (default is 1).
            limit (int, optional): The number of transactions per page (default is 10).
            recent (bool, optional): Whether to sort by the most recent transactions first (default is True).

        Returns:
            list: A list of Transaction objects for the given account and pagination.
        """
        async with session_scope() as session:
            offset = (page - 1) * limit

            # Determine the sorting order based on the 'recent' flag
            order_by_clause = Transaction.created_at.desc() if recent else Transaction.created_at.asc()

            result = await session.execute(
                select(Transaction)
                .filter(
                    (Transaction.sender_account_id == account_id) |
                    (Transaction.receiver_account_id == account_id)
                )
                .order_by(order_by_clause)
                .offset(offset)
                .limit(limit)
            )
            return result.scalars().all()

    @staticmethod
    async def count_transactions(session=None) -> int:
        async with session_scope(session) as session:
            result = await session.execute(select(func.count(Transaction.uuid)))
            return result.scalar() or 0
