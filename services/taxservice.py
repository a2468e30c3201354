import logging
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.future import select

from db import session_scope
from models.taxaccount import TaxAccount
from services.accountservice import AccountService
from services.currencyservice import CurrencyService
from utilities.exceptions import NotFoundError, UnauthorizedError, ValidationError
from utilities.tools import AMOUNT_QUANTUM, to_amount

logger = logging.getLogger(__name__)


class TaxService:

    @staticmethod
    async def get_tax_account(currency_id: int, session=None):
        async with session_scope(session) as session:
            result = await session.execute(select(TaxAccount).filter(TaxAccount.currency_id == currency_id))
            return result.scalars().first()

    @staticmethod
    async def set_percentage(ticker: str, percentage: int, is_authorized: bool):
        """
        Sets the transfer tax of a currency, creating its tax account if needed.

        Args:
            ticker (str): Currency ticker.
            percentage (int): Whole percent between 0 and 100.
            is_authorized (bool): Whether the caller administers this currency.

        Returns:
            TaxAccount: The updated tax account.
        """
        if not is_authorized:
            raise UnauthorizedError("You are not allowed to set the tax for this currency")
        if isinstance(percentage, bool) or not isinstance(percentage, int) or not 0 <= percentage <= 100:
            raise ValidationError("Tax percentage must be between 0 and 100")

        async with session_scope() as session:
            currency = await CurrencyService.require_by_ticker(ticker, session)
            tax_account = await TaxService.get_tax_account(currency.currency_id, session)
            if tax_account:
                tax_account.percentage = percentage
            else:
                tax_account = TaxAccount(currency_id=currency.currency_id, balance=Decimal(0),
                                         percentage=percentage)
                session.add(tax_account)

        logger.info("Tax for %s set to %s%%", currency.ticker, percentage)
        return tax_account

    @staticmethod
    async def compute_tax(currency_id: int, amount: Decimal, session=None) -> Decimal:
        """Tax owed on a transfer of ``amount``; zero when the currency has no tax account."""
        tax_account = await TaxService.get_tax_account(currency_id, session)
        if not tax_account or not tax_account.percentage:
            return Decimal(0)
        tax = (amount * Decimal(tax_account.percentage) / Decimal(100)).quantize(AMOUNT_QUANTUM)
        return min(tax, amount)

    @staticmethod
    async def accrue(currency_id: int, amount: Decimal, session=None):
        """
        Adds withheld tax to the pool of a currency.

        Raises:
            NotFoundError: If the currency has no tax account.
        """
        async with session_scope(session) as session:
            result = await session.execute(
                update(TaxAccount).where(TaxAccount.currency_id == currency_id)
                .values(balance=TaxAccount.balance + Decimal(amount))
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NotFoundError("No tax account found for this currency")

    @staticmethod
    async def collect(owner_id: int, ticker: str, amount, is_authorized: bool) -> Decimal:
        """
        Moves collected tax from the pool into the collector's account.

        Args:
            owner_id (int): The collector; receives the funds.
            ticker (str): Currency ticker.
            amount: An amount, or ``"all"`` for the whole pool. More than the
                pool holds collects the whole pool.
            is_authorized (bool): Whether the caller administers this currency.

        Returns:
            Decimal: The amount collected.
        """
        if not is_authorized:
            raise UnauthorizedError("You are not allowed to collect tax for this currency")

        collect_all = isinstance(amount, str) and amount.strip().lower() == "all"
        requested = None if collect_all else to_amount(amount)

        async with session_scope() as session:
            currency = await CurrencyService.require_by_ticker(ticker, session)
            result = await session.execute(
                select(TaxAccount.balance).filter(TaxAccount.currency_id == currency.currency_id)
                .with_for_update()
            )
            pool = result.scalar_one_or_none()
            if pool is None:
                raise NotFoundError("No tax account found for this currency")
            pool = Decimal(pool)
            if pool <= 0:
                raise ValidationError("No taxes to collect")

            collected = pool if requested is None else min(requested, pool)

            result = await session.execute(
                update(TaxAccount)
                .where(TaxAccount.currency_id == currency.currency_id)
                .where(TaxAccount.balance >= collected)
                .values(balance=TaxAccount.balance - collected)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise ValidationError("Tax pool changed during collection, try again")

            account_id = await AccountService.get_or_create_account(owner_id, currency.currency_id, session)
            await AccountService.adjust(account_id, collected, session)

        logger.info("Collected %s %s tax into account of %s", collected, currency.ticker, owner_id)
        return collected
