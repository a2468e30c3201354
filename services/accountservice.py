import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.future import select

from db import session_scope
from models.account import Account
from services.currencyservice import CurrencyService
from services.transactionservice import TransactionService
from utilities.exceptions import InsufficientBalanceError, NotFoundError, ValidationError
from utilities.tools import to_amount

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransferResult:
    transaction_uuid: str
    sender_id: int
    receiver_id: int
    ticker: str
    amount: Decimal
    tax: Decimal
    received: Decimal


class AccountService:

    @staticmethod
    async def read_account_by_id(account_id: int, session=None):
        """
        Retrieves an account by its ID from the database.

        Args:
            account_id (int): The ID of the account to retrieve.

        Returns:
            Account or None: The Account object if found, otherwise None.
        """
        async with session_scope(session) as session:
            result = await session.execute(select(Account).filter(Account.account_id == account_id))
            return result.scalars().first()

    @staticmethod
    async def get_account(owner_id: int, currency_id: int, session=None):
        """
        Retrieves an account by its owner_id and currency_id.

        Args:
            owner_id (int): The owner of the account.
            currency_id (int): The ID of the currency for the account.

        Returns:
            Account or None: The Account object if found, otherwise None.
        """
        async with session_scope(session) as session:
            result = await session.execute(
                select(Account).filter_by(owner_id=owner_id, currency_id=currency_id)
            )
            return result.scalars().first()

    @staticmethod
    async def get_balance(owner_id: int, currency_id: int, session=None) -> Decimal:
        """
        Returns the balance of an owner in a currency.

        Raises:
            NotFoundError: If the owner has no account in this currency.
        """
        async with session_scope(session) as session:
            result = await session.execute(
                select(Account.balance).filter_by(owner_id=owner_id, currency_id=currency_id)
            )
            balance = result.scalar_one_or_none()
            if balance is None:
                raise NotFoundError("No account found for this currency")
            return Decimal(balance)

    @staticmethod
    async def get_balance_by_account_id(account_id: int, session=None) -> Decimal:
        async with session_scope(session) as session:
            result = await session.execute(
                select(Account.balance).filter(Account.account_id == account_id)
            )
            balance = result.scalar_one_or_none()
            if balance is None:
                raise NotFoundError(f"Account {account_id} not found")
            return Decimal(balance)

    @staticmethod
    async def get_owner_id(account_id: int, session=None) -> int:
        async with session_scope(session) as session:
            result = await session.execute(
                select(Account.owner_id).filter(Account.account_id == account_id)
            )
            owner_id = result.scalar_one_or_none()
            if owner_id is None:
                raise NotFoundError(f"Account {account_id} not found")
            return owner_id

    @staticmethod
    async def get_or_create_account(owner_id: int, currency_id: int, session=None) -> int:
        """
        Returns the account id for (owner, currency), creating an empty account on first use.

        Args:
            owner_id (int): The owner of the account.
            currency_id (int): The ID of the currency for this account.
            session (AsyncSession | None): Optional session; the new row is only
                visible to others once the caller commits.

        Returns:
            int: The account id.
        """
        async with session_scope(session) as session:
            result = await session.execute(
                select(Account.account_id).filter_by(owner_id=owner_id, currency_id=currency_id)
            )
            account_id = result.scalar_one_or_none()
            if account_id is not None:
                return account_id

            new_account = Account(owner_id=owner_id, currency_id=currency_id, balance=Decimal(0))
            session.add(new_account)
            await session.flush()
            return new_account.account_id

    @staticmethod
    async def adjust(account_id: int, delta: Decimal, session=None):
        """
        Adds ``delta`` (which may be negative) to an account balance.

        Callers check funds themselves inside the same transaction. As a last
        line of defence a debit that would take the balance below zero is not
        applied.

        Raises:
            NotFoundError: If the account does not exist.
            InsufficientBalanceError: If a debit would make the balance negative.
        """
        delta = Decimal(delta)
        async with session_scope(session) as session:
            stmt = update(Account).where(Account.account_id == account_id)
            if delta < 0:
                stmt = stmt.where(Account.balance + delta >= 0)
            stmt = stmt.values(balance=Account.balance + delta).execution_options(synchronize_session=False)

            result = await session.execute(stmt)
            if result.rowcount == 0:
                exists = await session.execute(
                    select(Account.account_id).filter(Account.account_id == account_id)
                )
                if exists.scalar_one_or_none() is None:
                    raise NotFoundError(f"Account {account_id} not found")
                raise InsufficientBalanceError("Insufficient balance")

    @staticmethod
    async def set_balance(account_id: int, value: Decimal, session=None):
        """
        Overwrites an account balance.

        Raises:
            NotFoundError: If the account does not exist.
        """
        async with session_scope(session) as session:
            result = await session.execute(
                update(Account).where(Account.account_id == account_id)
                .values(balance=Decimal(value))
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NotFoundError(f"Account {account_id} not found")

    @staticmethod
    async def transfer(sender_id: int, receiver_id: int, ticker: str, amount) -> TransferResult:
        """
        Transfers a specified amount of currency from the sender's account to the receiver's account.

        Tax configured for the currency is withheld from the amount the
        receiver gets and added to the currency's tax pool.

        Args:
            sender_id (int): The owner sending the currency.
            receiver_id (int): The owner receiving the currency.
            ticker (str): The ticker of the currency being transferred.
            amount: The amount of currency to transfer.

        Returns:
            TransferResult: The recorded transfer.

        Raises:
            ValidationError: Non-positive amount or transfer to self.
            NotFoundError: Unknown currency.
            InsufficientBalanceError: Sender lacks the funds.
        """
        # Imported here, taxservice imports this module
        from services.taxservice import TaxService

        amount = to_amount(amount)
        if sender_id == receiver_id:
            raise ValidationError("You cannot transfer to yourself")

        async with session_scope() as session:
            currency = await CurrencyService.require_by_ticker(ticker, session)
            sender = await AccountService.get_account(sender_id, currency.currency_id, session)
            if not sender:
                raise InsufficientBalanceError(f"You have no {currency.ticker} account")

            balance = await AccountService.get_balance_by_account_id(sender.account_id, session)
            if balance < amount:
                raise InsufficientBalanceError(
                    f"Insufficient {currency.ticker} balance. You have {balance} but need {amount}"
                )

            receiver_account_id = await AccountService.get_or_create_account(
                receiver_id, currency.currency_id, session
            )
            tax = await TaxService.compute_tax(currency.currency_id, amount, session)
            received = amount - tax

            await AccountService.adjust(sender.account_id, -amount, session)
            if tax > 0:
                await TaxService.accrue(currency.currency_id, tax, session)
            await AccountService.adjust(receiver_account_id, received, session)

            transaction = await TransactionService.create_transaction(
                sender.account_id, receiver_account_id, received, session
            )

        logger.info("Transfer %s: %s %s from %s to %s (tax %s)",
                    transaction.uuid, amount, currency.ticker, sender_id, receiver_id, tax)
        return TransferResult(
            transaction_uuid=transaction.uuid,
            sender_id=sender_id,
            receiver_id=receiver_id,
            ticker=currency.ticker,
            amount=amount,
            tax=tax,
            received=received,
        )
