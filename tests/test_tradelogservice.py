from datetime import timedelta
from decimal import Decimal

import pytest

from conftest import fund
from services.swapservice import SwapService
from services.tradelogservice import TradeLogService, canonical_price, invert_price, normalize_pair
from utilities.exceptions import NotFoundError, ValidationError
from utilities.tools import parse_timeframe


def test_normalize_pair_is_symmetric():
    assert normalize_pair("xyz", "ABC") == ("ABC", "XYZ", True)
    assert normalize_pair("ABC", "XYZ") == ("ABC", "XYZ", False)


def test_normalize_pair_rejects_same_ticker():
    with pytest.raises(ValidationError):
        normalize_pair("ABC", "abc")


def test_canonical_price_ignores_side():
    assert canonical_price("ABC", Decimal("50"), "XYZ", Decimal("40")) == ("ABC", "XYZ", Decimal("0.8"))
    assert canonical_price("XYZ", Decimal("40"), "ABC", Decimal("50")) == ("ABC", "XYZ", Decimal("0.8"))


def test_canonical_price_keeps_tiny_prices():
    _, _, price = canonical_price("ABC", Decimal("999999999999999.99999999"), "XYZ", Decimal("0.00000001"))

    assert price > 0
    assert float(price) == pytest.approx(1e-23, rel=1e-9)


def test_canonical_price_handles_huge_prices():
    _, _, price = canonical_price("ABC", Decimal("0.00000001"), "XYZ", Decimal("999999999999999.99999999"))

    assert float(price) == pytest.approx(1e23, rel=1e-9)


def test_invert_price():
    assert invert_price(Decimal("0.8")) == Decimal("1.25")
    assert invert_price(Decimal(0)) is None
    assert invert_price(None) is None


@pytest.mark.parametrize("timeframe, expected", [
    ("15m", timedelta(minutes=15)),
    ("1h", timedelta(hours=1)),
    ("1d", timedelta(days=1)),
    ("1mnt", timedelta(days=30)),
    ("1y", timedelta(days=365)),
])
def test_parse_timeframe(timeframe, expected):
    assert parse_timeframe(timeframe) == expected


@pytest.mark.parametrize("timeframe", ["", "1", "d", "0d", "5w", "-1h"])
def test_parse_timeframe_rejects_garbage(timeframe):
    with pytest.raises(ValidationError):
        parse_timeframe(timeframe)


def test_calculate_percentage_change():
    changes = TradeLogService.calculate_percentage_change([Decimal("1"), Decimal("2"), Decimal("1")])

    assert changes == pytest.approx([100.0, -50.0])
    assert TradeLogService.calculate_percentage_change([Decimal("1")]) == []


async def _settle(maker_amount, maker_ticker, taker_amount, taker_ticker, maker_id=1, taker_id=2):
    await fund(maker_id, maker_ticker, maker_amount)
    await fund(taker_id, taker_ticker, taker_amount)
    swap = await SwapService.create_swap(maker_id, maker_amount, maker_ticker,
                                         taker_amount, taker_ticker, taker_id=taker_id)
    return await SwapService.accept_swap(taker_id, swap.swap_id)


async def test_vwap_is_inverse_across_orientations(currencies):
    await _settle("50", "ABC", "40", "XYZ")
    # Same pair, maker on the other side
    await _settle("30", "XYZ", "20", "ABC")

    forward = await TradeLogService.vwap("ABC", "XYZ", timedelta(days=1))
    backward = await TradeLogService.vwap("XYZ", "ABC", timedelta(days=1))

    # (40 + 30) XYZ over (50 + 20) ABC
    assert forward == Decimal(1)
    assert float(forward * backward) == pytest.approx(1.0)


async def test_vwap_without_trades(currencies):
    assert await TradeLogService.vwap("ABC", "XYZ", timedelta(days=1)) is None


async def test_get_price_in_both_orientations(currencies):
    await _settle("50", "ABC", "40", "XYZ")

    quote = await TradeLogService.get_price("ABC", "XYZ", "1d")
    assert float(quote.last_price) == pytest.approx(0.8)
    assert quote.vwap == Decimal("0.8")
    assert not quote.is_reversed

    inverted = await TradeLogService.get_price("XYZ", "ABC", "1d")
    assert inverted.is_reversed
    assert float(inverted.last_price) == pytest.approx(1.25)
    assert float(inverted.vwap) == pytest.approx(1.25)


async def test_get_price_without_history(currencies):
    with pytest.raises(NotFoundError):
        await TradeLogService.get_price("ABC", "XYZ")


async def test_price_change(currencies):
    await _settle("50", "ABC", "40", "XYZ")
    await _settle("50", "ABC", "80", "XYZ")

    changes = await TradeLogService.price_change("XYZ", "ABC", timedelta(days=1))

    # Canonical prices 0.8 then 1.6
    assert changes == pytest.approx([100.0])


async def test_settles_and_quotes_tiny_price(currencies):
    result = await _settle("1000000", "ABC", "0.00000001", "XYZ")

    assert result.price == Decimal("1E-14")
    assert float(await TradeLogService.latest_price("ABC", "XYZ")) == pytest.approx(1e-14, rel=1e-9)
    assert float(await TradeLogService.latest_price("XYZ", "ABC")) == pytest.approx(1e14, rel=1e-9)
    quote = await TradeLogService.get_price("XYZ", "ABC")
    assert float(quote.vwap) == pytest.approx(1e14, rel=1e-9)


async def test_settles_and_quotes_huge_price(currencies):
    result = await _settle("0.00000001", "ABC", "999999999999999", "XYZ")

    assert result.price == Decimal("99999999999999900000000")
    assert float(await TradeLogService.latest_price("ABC", "XYZ")) == pytest.approx(1e23, rel=1e-9)
    assert float(await TradeLogService.latest_price("XYZ", "ABC")) == pytest.approx(1e-23, rel=1e-9)
