import logging
from decimal import Decimal

from sqlalchemy.exc import IntegrityError
from sqlalchemy.future import select

from db import get_session, session_scope
from models.currency import Currency
from utilities.exceptions import (
    NotFoundError, UnauthorizedError, ValidationError
)
from utilities.tools import MAX_BALANCE, normalize_ticker, to_amount

logger = logging.getLogger(__name__)


class CurrencyService:

    @staticmethod
    async def create_currency(guild_id: int, name: str, ticker: str):
        """
        Creates a new currency entry in the database.

        Args:
            guild_id (int): The guild that issues the currency. One currency per guild.
            name (str): The name of the currency.
            ticker (str): The ticker symbol of the currency. Unique and immutable.

        Returns:
            Currency: The created Currency object.

        Raises:
            ValidationError: If the name or ticker is invalid or already taken,
                or the guild already has a currency.
        """
        ticker = normalize_ticker(ticker)
        name = (name or "").strip()
        if not name or len(name) > 64:
            raise ValidationError("Currency name must be between 1 and 64 characters")

        async with get_session() as session:
            existing = await session.execute(
                select(Currency).filter(
                    (Currency.guild_id == guild_id) |
                    (Currency.ticker == ticker) |
                    (Currency.name == name)
                )
            )
            for currency in existing.scalars().all():
                if currency.guild_id == guild_id:
                    raise ValidationError("This guild already has a currency")
                if currency.ticker == ticker:
                    raise ValidationError(f"Ticker {ticker} is already taken")
                raise ValidationError(f"Currency name {name} is already taken")

            new_currency = Currency(guild_id=guild_id, name=name, ticker=ticker)
            session.add(new_currency)
            try:
                await session.commit()
            except IntegrityError as e:
                # Lost a race against another create for the same guild/ticker
                await session.rollback()
                raise ValidationError("Currency already exists") from e
            await session.refresh(new_currency)
            logger.info("Currency %s created for guild %s", ticker, guild_id)
            return new_currency

    @staticmethod
    async def read_currency_by_field(field: str, value, session=None):
        """
        Retrieves a currency based on a specified field and value from the database.

        Args:
            field (str): The field to filter by (e.g., 'currency_id', 'guild_id', 'ticker').
            value (Any): The value of the field to search for.
            session (AsyncSession | None): Optional session to run inside.

        Returns:
            Currency or None: The Currency object if found, otherwise None.
        """
        field_map = {
            "currency_id": Currency.currency_id,
            "guild_id": Currency.guild_id,
            "name": Currency.name,
            "ticker": Currency.ticker,
        }

        if field not in field_map:
            raise ValueError(f"Invalid field '{field}'. Must be one of: {', '.join(field_map.keys())}")

        async with session_scope(session) as session:
            result = await session.execute(select(Currency).filter(field_map[field] == value))
            return result.scalars().first()

    @staticmethod
    async def read_currency_by_id(currency_id: int, session=None):
        return await CurrencyService.read_currency_by_field("currency_id", currency_id, session)

    @staticmethod
    async def read_currency_by_guild(guild_id: int, session=None):
        return await CurrencyService.read_currency_by_field("guild_id", guild_id, session)

    @staticmethod
    async def read_currency_by_ticker(ticker: str, session=None):
        return await CurrencyService.read_currency_by_field("ticker", normalize_ticker(ticker), session)

    @staticmethod
    async def require_by_ticker(ticker: str, session=None) -> Currency:
        """
        Like :meth:`read_currency_by_ticker` but raises when the currency is unknown.

        Raises:
            ValidationError: If the ticker is malformed.
            NotFoundError: If no currency has this ticker.
        """
        currency = await CurrencyService.read_currency_by_ticker(ticker, session)
        if not currency:
            raise NotFoundError(f"Currency {normalize_ticker(ticker)} not found")
        return currency

    @staticmethod
    async def mint(owner_id: int, amount, ticker: str, is_authorized: bool):
        """
        Creates new units of a currency in an owner's account.

        Args:
            owner_id (int): Receiver of the new units.
            amount: Amount to mint.
            ticker (str): Ticker of the currency.
            is_authorized (bool): Whether the caller may mint this currency,
                resolved by the command layer.

        Returns:
            Decimal: The new balance of the receiving account.
        """
        # Imported here, accountservice imports this module
        from services.accountservice import AccountService

        if not is_authorized:
            raise UnauthorizedError("You are not allowed to mint this currency")
        amount = to_amount(amount)

        async with session_scope() as session:
            currency = await CurrencyService.require_by_ticker(ticker, session)
            account_id = await AccountService.get_or_create_account(owner_id, currency.currency_id, session)
            balance = await AccountService.get_balance_by_account_id(account_id, session)
            new_balance = balance + amount
            if new_balance > MAX_BALANCE:
                raise ValidationError("Minting would exceed the maximum balance")
            await AccountService.adjust(account_id, amount, session)

        logger.info("Minted %s %s to %s", amount, currency.ticker, owner_id)
        return Decimal(new_balance)
