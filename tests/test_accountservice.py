from decimal import Decimal

import pytest

from conftest import balance, fund
from services.accountservice import AccountService
from services.currencyservice import CurrencyService
from services.taxservice import TaxService
from services.transactionservice import TransactionService
from utilities.exceptions import (
    InsufficientBalanceError, NotFoundError, UnauthorizedError, ValidationError
)


async def test_adjust_debit(currencies):
    account_id = await fund(10, "ABC", "100.00")

    await AccountService.adjust(account_id, Decimal("-30"))

    assert await AccountService.get_balance_by_account_id(account_id) == Decimal("70.00")


async def test_adjust_rejects_overdraft(currencies):
    account_id = await fund(10, "ABC", "10")

    with pytest.raises(InsufficientBalanceError):
        await AccountService.adjust(account_id, Decimal("-10.00000001"))

    assert await AccountService.get_balance_by_account_id(account_id) == Decimal("10")


async def test_set_balance(currencies):
    account_id = await fund(10, "ABC", "100")

    await AccountService.set_balance(account_id, Decimal("12.5"))

    assert await AccountService.get_balance_by_account_id(account_id) == Decimal("12.5")
    with pytest.raises(NotFoundError):
        await AccountService.set_balance(9999, Decimal("1"))


async def test_adjust_unknown_account():
    with pytest.raises(NotFoundError):
        await AccountService.adjust(9999, Decimal("-1"))


async def test_get_or_create_account_is_idempotent(currencies):
    abc, _ = currencies
    first = await AccountService.get_or_create_account(10, abc.currency_id)
    second = await AccountService.get_or_create_account(10, abc.currency_id)

    assert first == second
    assert await AccountService.get_balance(10, abc.currency_id) == Decimal(0)


async def test_get_balance_missing_account(currencies):
    abc, _ = currencies
    with pytest.raises(NotFoundError):
        await AccountService.get_balance(42, abc.currency_id)


async def test_mint_requires_authorization(currencies):
    with pytest.raises(UnauthorizedError):
        await CurrencyService.mint(10, "5", "ABC", is_authorized=False)


async def test_mint_rejects_bad_amount(currencies):
    with pytest.raises(ValidationError):
        await CurrencyService.mint(10, "-5", "ABC", is_authorized=True)


async def test_transfer_without_tax(currencies):
    await fund(10, "ABC", "100")

    result = await AccountService.transfer(10, 20, "ABC", "25")

    assert result.tax == Decimal(0)
    assert result.received == Decimal("25")
    assert await balance(10, "ABC") == Decimal("75")
    assert await balance(20, "ABC") == Decimal("25")
    transaction = await TransactionService.read_transaction_by_uuid(result.transaction_uuid)
    assert transaction is not None


async def test_transfer_withholds_tax(currencies):
    abc, _ = currencies
    await fund(10, "ABC", "100")
    await TaxService.set_percentage("ABC", 10, is_authorized=True)

    result = await AccountService.transfer(10, 20, "ABC", "50")

    assert result.tax == Decimal("5")
    assert await balance(10, "ABC") == Decimal("50")
    assert await balance(20, "ABC") == Decimal("45")
    tax_account = await TaxService.get_tax_account(abc.currency_id)
    assert Decimal(tax_account.balance) == Decimal("5")


async def test_transfer_insufficient_balance(currencies):
    await fund(10, "ABC", "10")

    with pytest.raises(InsufficientBalanceError):
        await AccountService.transfer(10, 20, "ABC", "11")

    assert await balance(10, "ABC") == Decimal("10")
    assert await balance(20, "ABC") == Decimal(0)


async def test_transfer_to_self(currencies):
    await fund(10, "ABC", "10")

    with pytest.raises(ValidationError):
        await AccountService.transfer(10, 10, "ABC", "1")


async def test_transfer_unknown_currency(currencies):
    with pytest.raises(NotFoundError):
        await AccountService.transfer(10, 20, "NOPE", "1")


async def test_transaction_history(currencies):
    sender_account = await fund(10, "ABC", "100")
    for amount in ("1", "2", "3"):
        await AccountService.transfer(10, 20, "ABC", amount)

    recent = await TransactionService.get_transactions_by_account(sender_account, page=1, limit=2)
    oldest = await TransactionService.get_transactions_by_account(sender_account, page=1, limit=1, recent=False)

    assert [Decimal(t.amount) for t in recent] == [Decimal("3"), Decimal("2")]
    assert Decimal(oldest[0].amount) == Decimal("1")
