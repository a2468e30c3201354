from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal, localcontext

import numpy as np
from sqlalchemy import and_, case, func, or_
from sqlalchemy.future import select

from db import session_scope
from models.swap import Swap, SwapStatus
from models.tradelog import TradeLogEntry
from services.currencyservice import CurrencyService
from utilities.exceptions import NotFoundError, ValidationError
from utilities.tools import PRICE_CONTEXT, PRICE_QUANTUM, normalize_ticker, parse_timeframe


@dataclass(frozen=True)
class PriceQuote:
    base_ticker: str
    quote_ticker: str
    timeframe: str
    last_price: Decimal
    vwap: Decimal | None
    is_reversed: bool


def normalize_pair(ticker_a: str, ticker_b: str):
    """
    Puts a currency pair in canonical order.

    Returns:
        tuple: (base, quote, reversed) where base sorts before quote and
        ``reversed`` is True when the arguments came in the other order.
    """
    ticker_a = normalize_ticker(ticker_a)
    ticker_b = normalize_ticker(ticker_b)
    if ticker_a == ticker_b:
        raise ValidationError("Base and quote currencies must be different")
    if ticker_a < ticker_b:
        return ticker_a, ticker_b, False
    return ticker_b, ticker_a, True


def invert_price(price: Decimal | None) -> Decimal | None:
    """Price in the opposite orientation, or None when there is no usable price."""
    if price is None or price == 0:
        return None
    with localcontext(PRICE_CONTEXT):
        return (1 / Decimal(price)).quantize(PRICE_QUANTUM)


def canonical_price(maker_ticker: str, maker_amount: Decimal, taker_ticker: str, taker_amount: Decimal):
    """
    Price of a settled swap in canonical order, expressed as quote per base.

    Returns:
        tuple: (base_ticker, quote_ticker, price)
    """
    base, quote, reversed_ = normalize_pair(maker_ticker, taker_ticker)
    base_amount, quote_amount = (taker_amount, maker_amount) if reversed_ else (maker_amount, taker_amount)
    with localcontext(PRICE_CONTEXT):
        price = (Decimal(quote_amount) / Decimal(base_amount)).quantize(PRICE_QUANTUM)
    return base, quote, price


class TradeLogService:
    @staticmethod
    def calculate_percentage_change(prices):
        """Calculates the percentage change between consecutive prices in an array.

        Args:
          prices: A list or NumPy array of prices.

        Returns:
          A list of percentage changes.
        """
        prices = np.asarray([float(p) for p in prices], dtype=float)
        if prices.size < 2:
            return []
        with np.errstate(divide="ignore", invalid="ignore"):
            changes = np.diff(prices) / prices[:-1] * 100
        return np.nan_to_num(changes, nan=0.0, posinf=0.0, neginf=0.0).tolist()

    @staticmethod
    async def create_trade_log(base_currency_id: int, quote_currency_id: int, price: Decimal,
                               created_at=None, session=None):
        """
        Creates a new trade log entry.

        :param base_currency_id: ID of the canonical base currency.
        :param quote_currency_id: ID of the canonical quote currency.
        :param price: Quote per base.
        :param created_at: The date and time the trade occurred (default: now).
        :param session: Optional session to join.
        :return: The created TradeLogEntry instance.
        """
        async with session_scope(session) as session:
            entry = TradeLogEntry(
                base_currency_id=base_currency_id,
                quote_currency_id=quote_currency_id,
                price=price,
                created_at=created_at or datetime.now(timezone.utc)
            )
            session.add(entry)
            await session.flush()
            return entry

    @staticmethod
    async def get_trade_logs_by_currency_pair(base_currency_id: int, quote_currency_id: int,
                                              time_delta: timedelta | None = None, session=None):
        """
        Retrieves trade logs for a canonical currency pair, newest first,
        optionally limited to the last ``time_delta``.
        """
        async with session_scope(session) as session:
            stmt = (
                select(TradeLogEntry)
                .where(
                    TradeLogEntry.base_currency_id == base_currency_id,
                    TradeLogEntry.quote_currency_id == quote_currency_id,
                )
            )
            if time_delta is not None:
                stmt = stmt.where(TradeLogEntry.created_at >= datetime.now(timezone.utc) - time_delta)

            stmt = stmt.order_by(TradeLogEntry.created_at.desc(), TradeLogEntry.trade_log_id.desc())
            result = await session.execute(stmt)
            return result.scalars().all()

    @staticmethod
    async def get_latest_price(base_currency_id: int, quote_currency_id: int, session=None) -> Decimal | None:
        """Most recent canonical price for the pair, or None if it never traded."""
        async with session_scope(session) as session:
            result = await session.execute(
                select(TradeLogEntry.price)
                .where(
                    TradeLogEntry.base_currency_id == base_currency_id,
                    TradeLogEntry.quote_currency_id == quote_currency_id,
                )
                .order_by(TradeLogEntry.created_at.desc(), TradeLogEntry.trade_log_id.desc())
                .limit(1)
            )
            price = result.scalar_one_or_none()
            return Decimal(price) if price is not None else None

    @staticmethod
    async def get_vwap(base_currency_id: int, quote_currency_id: int, window: timedelta,
                       session=None) -> Decimal | None:
        """
        Volume-weighted average price of a canonical pair over accepted swaps
        settled within ``window``: sum of quote volume over sum of base volume.
        """
        since = datetime.now(timezone.utc) - window
        maker_is_base = Swap.maker_currency_id == base_currency_id
        base_volume = func.sum(case((maker_is_base, Swap.maker_amount), else_=Swap.taker_amount))
        quote_volume = func.sum(case((maker_is_base, Swap.taker_amount), else_=Swap.maker_amount))

        async with session_scope(session) as session:
            result = await session.execute(
                select(base_volume, quote_volume)
                .where(Swap.status == SwapStatus.ACCEPTED)
                .where(Swap.updated_at >= since)
                .where(or_(
                    and_(Swap.maker_currency_id == base_currency_id, Swap.taker_currency_id == quote_currency_id),
                    and_(Swap.maker_currency_id == quote_currency_id, Swap.taker_currency_id == base_currency_id),
                ))
            )
            total_base, total_quote = result.one()

        if not total_base:
            return None
        with localcontext(PRICE_CONTEXT):
            return (Decimal(total_quote) / Decimal(total_base)).quantize(PRICE_QUANTUM)

    @staticmethod
    async def _resolve_pair(ticker_a: str, ticker_b: str, session):
        base, quote, reversed_ = normalize_pair(ticker_a, ticker_b)
        base_currency = await CurrencyService.require_by_ticker(base, session)
        quote_currency = await CurrencyService.require_by_ticker(quote, session)
        return base_currency, quote_currency, reversed_

    @staticmethod
    async def latest_price(ticker_a: str, ticker_b: str) -> Decimal | None:
        """Latest price of ``ticker_b`` per ``ticker_a``."""
        async with session_scope() as session:
            base, quote, reversed_ = await TradeLogService._resolve_pair(ticker_a, ticker_b, session)
            price = await TradeLogService.get_latest_price(base.currency_id, quote.currency_id, session)
        if price is None:
            return None
        return invert_price(price) if reversed_ else price

    @staticmethod
    async def vwap(ticker_a: str, ticker_b: str, window: timedelta) -> Decimal | None:
        """VWAP of ``ticker_b`` per ``ticker_a`` over ``window``."""
        async with session_scope() as session:
            base, quote, reversed_ = await TradeLogService._resolve_pair(ticker_a, ticker_b, session)
            value = await TradeLogService.get_vwap(base.currency_id, quote.currency_id, window, session)
        if value is None:
            return None
        return invert_price(value) if reversed_ else value

    @staticmethod
    async def get_price(base_ticker: str, quote_ticker: str, timeframe: str = "1d") -> PriceQuote:
        """
        Latest price and VWAP for a pair in the orientation the caller asked for.

        Raises:
            ValidationError: Bad ticker, same currency twice or bad timeframe.
            NotFoundError: Unknown currency or the pair never traded.
        """
        window = parse_timeframe(timeframe)
        last_price = await TradeLogService.latest_price(base_ticker, quote_ticker)
        if last_price is None:
            raise NotFoundError("No trading history found for this pair. Please execute a swap first.")
        vwap = await TradeLogService.vwap(base_ticker, quote_ticker, window)
        _, _, reversed_ = normalize_pair(base_ticker, quote_ticker)

        return PriceQuote(
            base_ticker=normalize_ticker(base_ticker),
            quote_ticker=normalize_ticker(quote_ticker),
            timeframe=timeframe,
            last_price=last_price,
            vwap=vwap,
            is_reversed=reversed_,
        )

    @staticmethod
    async def price_change(ticker_a: str, ticker_b: str, window: timedelta):
        """
        Percentage change between consecutive canonical prices of a pair within ``window``, oldest first.
        """
        async with session_scope() as session:
            base, quote, _ = await TradeLogService._resolve_pair(ticker_a, ticker_b, session)
            entries = await TradeLogService.get_trade_logs_by_currency_pair(
                base.currency_id, quote.currency_id, window, session
            )
        prices = [entry.price for entry in reversed(entries)]
        return TradeLogService.calculate_percentage_change(prices)
