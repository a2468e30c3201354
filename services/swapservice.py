import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from db import session_scope
from models.account import Account
from models.swap import Swap, SwapStatus
from services.accountservice import AccountService
from services.currencyservice import CurrencyService
from services.tradelogservice import TradeLogService, canonical_price
from services.transactionservice import TransactionService
from utilities.exceptions import (
    InsufficientBalanceError, NotFoundError, StateError, UnauthorizedError, ValidationError
)
from utilities.tools import to_amount

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SwapResult:
    swap_id: int
    maker_id: int
    taker_id: int | None
    maker_amount: Decimal
    maker_ticker: str
    taker_amount: Decimal
    taker_ticker: str
    status: str


@dataclass(frozen=True)
class SettlementResult:
    swap_id: int
    maker_id: int
    taker_id: int
    maker_amount: Decimal
    maker_ticker: str
    taker_amount: Decimal
    taker_ticker: str
    status: str
    transaction_uuids: tuple = ()
    base_ticker: str | None = None
    quote_ticker: str | None = None
    price: Decimal | None = None


@dataclass(frozen=True)
class SwapView:
    swap_id: int
    status: str
    maker_id: int
    taker_id: int | None
    maker_amount: Decimal
    maker_ticker: str
    taker_amount: Decimal
    taker_ticker: str
    is_open: bool
    created_at: datetime
    updated_at: datetime


def _status_error(status: SwapStatus, action: str) -> StateError:
    if status == SwapStatus.ACCEPTED:
        return StateError("This swap has already been accepted!")
    if status == SwapStatus.CANCELLED:
        return StateError("This swap has been cancelled!")
    if status == SwapStatus.EXPIRED:
        return StateError("This swap has expired!")
    return StateError(f"Swap status is '{status.value}', cannot {action}.")


def _to_view(swap: Swap) -> SwapView:
    return SwapView(
        swap_id=swap.swap_id,
        status=swap.status.value,
        maker_id=swap.maker_account.owner_id,
        taker_id=swap.taker_account.owner_id if swap.taker_account else None,
        maker_amount=Decimal(swap.maker_amount),
        maker_ticker=swap.maker_currency.ticker,
        taker_amount=Decimal(swap.taker_amount),
        taker_ticker=swap.taker_currency.ticker,
        is_open=swap.is_open,
        created_at=swap.created_at,
        updated_at=swap.updated_at,
    )


_VIEW_OPTIONS = (
    selectinload(Swap.maker_account),
    selectinload(Swap.taker_account),
    selectinload(Swap.maker_currency),
    selectinload(Swap.taker_currency),
)


class SwapService:

    @staticmethod
    async def create_swap(
            maker_id: int,
            maker_amount,
            maker_ticker: str,
            taker_amount,
            taker_ticker: str,
            taker_id: int | None = None,
    ) -> SwapResult:
        """
        Creates a swap and moves the maker's side into escrow.

        Args:
            maker_id (int): The owner offering ``maker_amount`` of ``maker_ticker``.
            maker_amount: Amount the maker gives.
            maker_ticker (str): Currency the maker gives.
            taker_amount: Amount the maker wants in return.
            taker_ticker (str): Currency the maker wants.
            taker_id (int | None): Designated counterparty. None makes an open
                swap that anyone but the maker may accept.

        Returns:
            SwapResult: The pending swap.

        Raises:
            ValidationError: Bad amount or ticker, same currency on both sides, or self-trade.
            NotFoundError: Unknown currency.
            InsufficientBalanceError: Maker (or designated taker) lacks the funds.
        """
        maker_amount = to_amount(maker_amount, "maker amount")
        taker_amount = to_amount(taker_amount, "taker amount")
        if taker_id is not None and taker_id == maker_id:
            raise ValidationError("You cannot swap with yourself")

        async with session_scope() as session:
            maker_currency = await CurrencyService.require_by_ticker(maker_ticker, session)
            taker_currency = await CurrencyService.require_by_ticker(taker_ticker, session)
            if maker_currency.currency_id == taker_currency.currency_id:
                raise ValidationError("A swap needs two different currencies")

            maker_account = await AccountService.get_account(maker_id, maker_currency.currency_id, session)
            if not maker_account:
                raise InsufficientBalanceError(f"Maker has no {maker_currency.ticker} account")
            maker_balance = await AccountService.get_balance_by_account_id(maker_account.account_id, session)
            if maker_balance < maker_amount:
                raise InsufficientBalanceError(f"Maker has insufficient {maker_currency.ticker} balance")

            taker_account_id = None
            if taker_id is not None:
                # Advisory only, the taker is not debited until acceptance
                taker_account = await AccountService.get_account(taker_id, taker_currency.currency_id, session)
                if not taker_account:
                    raise InsufficientBalanceError(f"Taker has no {taker_currency.ticker} account")
                taker_balance = await AccountService.get_balance_by_account_id(taker_account.account_id, session)
                if taker_balance < taker_amount:
                    raise InsufficientBalanceError(f"Taker has insufficient {taker_currency.ticker} balance")
                taker_account_id = taker_account.account_id

            await AccountService.adjust(maker_account.account_id, -maker_amount, session)

            now = datetime.now(timezone.utc)
            swap = Swap(
                maker_account_id=maker_account.account_id,
                taker_account_id=taker_account_id,
                maker_currency_id=maker_currency.currency_id,
                taker_currency_id=taker_currency.currency_id,
                maker_amount=maker_amount,
                taker_amount=taker_amount,
                taker_escrowed=False,
                status=SwapStatus.PENDING,
                created_at=now,
                updated_at=now,
            )
            session.add(swap)
            await session.flush()
            swap_id = swap.swap_id

        logger.info("Swap %s created: %s offers %s %s for %s %s (taker %s)",
                    swap_id, maker_id, maker_amount, maker_currency.ticker,
                    taker_amount, taker_currency.ticker, taker_id if taker_id is not None else "open")
        return SwapResult(
            swap_id=swap_id,
            maker_id=maker_id,
            taker_id=taker_id,
            maker_amount=maker_amount,
            maker_ticker=maker_currency.ticker,
            taker_amount=taker_amount,
            taker_ticker=taker_currency.ticker,
            status=SwapStatus.PENDING.value,
        )

    @staticmethod
    async def _load_for_update(swap_id: int, session) -> Swap:
        result = await session.execute(
            select(Swap).where(Swap.swap_id == swap_id).with_for_update()
        )
        swap = result.scalars().first()
        if not swap:
            raise NotFoundError("Swap not found")
        return swap

    @staticmethod
    async def _transition(swap_id: int, new_status: SwapStatus, session, **values):
        """
        Moves a pending swap to a terminal status. Only one caller can win;
        the others see zero affected rows.
        """
        result = await session.execute(
            update(Swap)
            .where(Swap.swap_id == swap_id, Swap.status == SwapStatus.PENDING)
            .values(status=new_status, updated_at=datetime.now(timezone.utc), **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise StateError("This swap is no longer pending")

    @staticmethod
    async def accept_swap(actor_id: int, swap_id: int) -> SettlementResult:
        """
        Settles a pending swap.

        The acceptor pays ``taker_amount`` to the maker and receives the
        escrowed ``maker_amount``. Balances, the status change, both
        transaction records and the trade log entry commit together.

        Raises:
            NotFoundError: Unknown swap.
            StateError: The swap is not pending.
            UnauthorizedError: Not the designated taker, or the maker accepting their own open swap.
            InsufficientBalanceError: The acceptor lacks ``taker_amount``.
        """
        async with session_scope() as session:
            swap = await SwapService._load_for_update(swap_id, session)
            if swap.status != SwapStatus.PENDING:
                raise _status_error(swap.status, "accept")

            maker_id = await AccountService.get_owner_id(swap.maker_account_id, session)
            is_open = swap.is_open
            if not is_open:
                taker_id = await AccountService.get_owner_id(swap.taker_account_id, session)
                if actor_id != taker_id:
                    raise UnauthorizedError(
                        "You are not authorized to accept this swap. "
                        "Only the designated taker can accept targeted swaps."
                    )
            elif actor_id == maker_id:
                raise UnauthorizedError("You cannot accept your own open swap. Another user must accept it.")

            maker_currency = await CurrencyService.read_currency_by_id(swap.maker_currency_id, session)
            taker_currency = await CurrencyService.read_currency_by_id(swap.taker_currency_id, session)
            maker_amount = Decimal(swap.maker_amount)
            taker_amount = Decimal(swap.taker_amount)

            actor_pay_account = await AccountService.get_account(actor_id, swap.taker_currency_id, session)
            if not actor_pay_account:
                raise InsufficientBalanceError(
                    f"Insufficient balance. You need {taker_amount} {taker_currency.ticker} but have none"
                )

            # Claim the swap before reading the balance, a racing accept fails here with StateError
            transition_values = {"taker_account_id": actor_pay_account.account_id} if is_open else {}
            await SwapService._transition(swap_id, SwapStatus.ACCEPTED, session, **transition_values)

            actor_balance = await AccountService.get_balance_by_account_id(actor_pay_account.account_id, session)
            if actor_balance < taker_amount:
                raise InsufficientBalanceError(
                    f"Insufficient balance. You need {taker_amount} {taker_currency.ticker} "
                    f"but only have {actor_balance}"
                )

            await AccountService.adjust(actor_pay_account.account_id, -taker_amount, session)
            maker_receive_account_id = await AccountService.get_or_create_account(
                maker_id, swap.taker_currency_id, session
            )
            await AccountService.adjust(maker_receive_account_id, taker_amount, session)
            actor_receive_account_id = await AccountService.get_or_create_account(
                actor_id, swap.maker_currency_id, session
            )
            await AccountService.adjust(actor_receive_account_id, maker_amount, session)

            taker_leg = await TransactionService.create_transaction(
                actor_pay_account.account_id, maker_receive_account_id, taker_amount, session
            )
            maker_leg = await TransactionService.create_transaction(
                swap.maker_account_id, actor_receive_account_id, maker_amount, session
            )

            base_ticker, quote_ticker, price = canonical_price(
                maker_currency.ticker, maker_amount, taker_currency.ticker, taker_amount
            )
            base_currency, quote_currency = (
                (maker_currency, taker_currency) if base_ticker == maker_currency.ticker
                else (taker_currency, maker_currency)
            )
            await TradeLogService.create_trade_log(
                base_currency.currency_id, quote_currency.currency_id, price, session=session
            )

        logger.info("Swap %s accepted by %s: %s %s <-> %s %s at %s %s/%s",
                    swap_id, actor_id, maker_amount, maker_currency.ticker, taker_amount,
                    taker_currency.ticker, price, quote_ticker, base_ticker)
        return SettlementResult(
            swap_id=swap_id,
            maker_id=maker_id,
            taker_id=actor_id,
            maker_amount=maker_amount,
            maker_ticker=maker_currency.ticker,
            taker_amount=taker_amount,
            taker_ticker=taker_currency.ticker,
            status=SwapStatus.ACCEPTED.value,
            transaction_uuids=(taker_leg.uuid, maker_leg.uuid),
            base_ticker=base_ticker,
            quote_ticker=quote_ticker,
            price=price,
        )

    @staticmethod
    async def deny_swap(actor_id: int, swap_id: int) -> SettlementResult:
        """
        Cancels a pending swap and refunds whatever was escrowed.

        Only the maker, or the designated taker of a targeted swap, may deny.

        Raises:
            NotFoundError: Unknown swap.
            StateError: The swap is not pending.
            UnauthorizedError: The actor is neither maker nor designated taker.
        """
        async with session_scope() as session:
            swap = await SwapService._load_for_update(swap_id, session)
            if swap.status != SwapStatus.PENDING:
                raise _status_error(swap.status, "deny")

            maker_id = await AccountService.get_owner_id(swap.maker_account_id, session)
            taker_id = None
            if not swap.is_open:
                taker_id = await AccountService.get_owner_id(swap.taker_account_id, session)

            if actor_id != maker_id and (taker_id is None or actor_id != taker_id):
                raise UnauthorizedError(
                    "You are not authorized to deny this swap. Only the maker or taker can deny."
                )

            maker_amount = Decimal(swap.maker_amount)
            taker_amount = Decimal(swap.taker_amount)
            taker_escrowed = bool(swap.taker_escrowed) and not swap.is_open

            await SwapService._transition(swap_id, SwapStatus.CANCELLED, session)
            await AccountService.adjust(swap.maker_account_id, maker_amount, session)
            if taker_escrowed:
                await AccountService.adjust(swap.taker_account_id, taker_amount, session)

            maker_currency = await CurrencyService.read_currency_by_id(swap.maker_currency_id, session)
            taker_currency = await CurrencyService.read_currency_by_id(swap.taker_currency_id, session)

        logger.info("Swap %s cancelled by %s, refunded %s %s to %s",
                    swap_id, actor_id, maker_amount, maker_currency.ticker, maker_id)
        return SettlementResult(
            swap_id=swap_id,
            maker_id=maker_id,
            taker_id=taker_id,
            maker_amount=maker_amount,
            maker_ticker=maker_currency.ticker,
            taker_amount=taker_amount,
            taker_ticker=taker_currency.ticker,
            status=SwapStatus.CANCELLED.value,
        )

    @staticmethod
    async def get_swap_status(swap_id: int) -> SwapView:
        """
        Read-only view of a swap with owner ids and tickers resolved.

        Raises:
            NotFoundError: Unknown swap.
        """
        async with session_scope() as session:
            result = await session.execute(
                select(Swap).options(*_VIEW_OPTIONS).where(Swap.swap_id == swap_id)
            )
            swap = result.scalars().first()
            if not swap:
                raise NotFoundError("Swap not found")
            return _to_view(swap)

    @staticmethod
    async def list_pending_for_owner(owner_id: int):
        """Pending swaps where the owner is the maker or the designated taker, oldest first."""
        async with session_scope() as session:
            account_ids = select(Account.account_id).where(Account.owner_id == owner_id)
            result = await session.execute(
                select(Swap).options(*_VIEW_OPTIONS)
                .where(Swap.status == SwapStatus.PENDING)
                .where(Swap.maker_account_id.in_(account_ids) | Swap.taker_account_id.in_(account_ids))
                .order_by(Swap.swap_id)
            )
            return [_to_view(swap) for swap in result.scalars().all()]

    @staticmethod
    async def list_open_swaps():
        """Pending swaps without a designated taker, oldest first."""
        async with session_scope() as session:
            result = await session.execute(
                select(Swap).options(*_VIEW_OPTIONS)
                .where(Swap.status == SwapStatus.PENDING)
                .where(Swap.taker_account_id.is_(None))
                .order_by(Swap.swap_id)
            )
            return [_to_view(swap) for swap in result.scalars().all()]
