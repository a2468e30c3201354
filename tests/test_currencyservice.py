from decimal import Decimal

import pytest

from services.currencyservice import CurrencyService
from utilities.exceptions import NotFoundError, ValidationError
from utilities.tools import MAX_BALANCE


async def test_create_currency_normalizes_ticker():
    currency = await CurrencyService.create_currency(1, "Alpha Coin", " abc ")

    assert currency.ticker == "ABC"
    assert (await CurrencyService.read_currency_by_ticker("abc")).currency_id == currency.currency_id
    assert (await CurrencyService.read_currency_by_guild(1)).currency_id == currency.currency_id


@pytest.mark.parametrize("guild_id, name, ticker", [
    (1, "Other Coin", "DEF"),
    (2, "Alpha Coin", "DEF"),
    (2, "Other Coin", "ABC"),
])
async def test_create_currency_uniqueness(guild_id, name, ticker):
    await CurrencyService.create_currency(1, "Alpha Coin", "ABC")

    with pytest.raises(ValidationError):
        await CurrencyService.create_currency(guild_id, name, ticker)


@pytest.mark.parametrize("ticker", ["AB", "A" * 17, "AB-C", ""])
async def test_create_currency_bad_ticker(ticker):
    with pytest.raises(ValidationError):
        await CurrencyService.create_currency(1, "Alpha Coin", ticker)


async def test_ticker_is_immutable():
    currency = await CurrencyService.create_currency(1, "Alpha Coin", "ABC")

    with pytest.raises(ValueError):
        currency.ticker = "DEF"


async def test_require_by_ticker_unknown():
    with pytest.raises(NotFoundError):
        await CurrencyService.require_by_ticker("NOPE")


async def test_mint(currencies):
    assert await CurrencyService.mint(5, "10", "ABC", is_authorized=True) == Decimal("10")
    assert await CurrencyService.mint(5, "2.5", "ABC", is_authorized=True) == Decimal("12.5")


async def test_mint_cap(currencies):
    await CurrencyService.mint(5, MAX_BALANCE, "ABC", is_authorized=True)

    with pytest.raises(ValidationError):
        await CurrencyService.mint(5, "1", "ABC", is_authorized=True)
