import os
import tempfile

# Must be set before config is imported by any project module
_db_dir = tempfile.mkdtemp(prefix="ledger-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_db_dir, 'ledger.db')}"
os.environ.setdefault("TOKEN_ENCRYPTION_KEY", "00112233445566778899aabbccddeeff00112233445566778899aabbccddeeff")

from decimal import Decimal

import pytest

from create_tables import create_tables, drop_tables
from services.accountservice import AccountService
from services.currencyservice import CurrencyService


@pytest.fixture(autouse=True)
async def schema():
    await drop_tables()
    await create_tables()
    yield


@pytest.fixture
async def currencies():
    abc = await CurrencyService.create_currency(1, "Alpha Coin", "ABC")
    xyz = await CurrencyService.create_currency(2, "Zulu Coin", "XYZ")
    return abc, xyz


async def fund(owner_id: int, ticker: str, amount) -> int:
    """Mint ``amount`` into the owner's account and return the account id."""
    await CurrencyService.mint(owner_id, amount, ticker, is_authorized=True)
    currency = await CurrencyService.require_by_ticker(ticker)
    account = await AccountService.get_account(owner_id, currency.currency_id)
    return account.account_id


async def balance(owner_id: int, ticker: str) -> Decimal:
    currency = await CurrencyService.require_by_ticker(ticker)
    account = await AccountService.get_account(owner_id, currency.currency_id)
    if not account:
        return Decimal(0)
    return await AccountService.get_balance_by_account_id(account.account_id)
