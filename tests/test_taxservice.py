from decimal import Decimal

import pytest

from conftest import balance, fund
from services.accountservice import AccountService
from services.taxservice import TaxService
from utilities.exceptions import NotFoundError, UnauthorizedError, ValidationError


@pytest.fixture
async def taxed(currencies):
    await TaxService.set_percentage("ABC", 20, is_authorized=True)
    await fund(1, "ABC", "100")
    await AccountService.transfer(1, 2, "ABC", "50")
    return currencies


async def test_set_percentage_requires_authorization(currencies):
    with pytest.raises(UnauthorizedError):
        await TaxService.set_percentage("ABC", 5, is_authorized=False)


@pytest.mark.parametrize("percentage", [-1, 101, 2.5, True])
async def test_set_percentage_range(currencies, percentage):
    with pytest.raises(ValidationError):
        await TaxService.set_percentage("ABC", percentage, is_authorized=True)


async def test_set_percentage_updates_existing(currencies):
    abc, _ = currencies
    await TaxService.set_percentage("ABC", 5, is_authorized=True)
    await TaxService.set_percentage("ABC", 7, is_authorized=True)

    tax_account = await TaxService.get_tax_account(abc.currency_id)
    assert tax_account.percentage == 7


async def test_compute_tax(currencies):
    abc, xyz = currencies
    await TaxService.set_percentage("ABC", 3, is_authorized=True)

    assert await TaxService.compute_tax(abc.currency_id, Decimal("10")) == Decimal("0.3")
    assert await TaxService.compute_tax(xyz.currency_id, Decimal("10")) == Decimal(0)


async def test_accrue_without_tax_account(currencies):
    _, xyz = currencies
    with pytest.raises(NotFoundError):
        await TaxService.accrue(xyz.currency_id, Decimal("1"))


async def test_collect_part_of_pool(taxed):
    abc, _ = taxed

    collected = await TaxService.collect(3, "ABC", "4", is_authorized=True)

    assert collected == Decimal("4")
    assert await balance(3, "ABC") == Decimal("4")
    tax_account = await TaxService.get_tax_account(abc.currency_id)
    assert Decimal(tax_account.balance) == Decimal("6")


async def test_collect_all_caps_at_pool(taxed):
    collected = await TaxService.collect(3, "ABC", "all", is_authorized=True)
    assert collected == Decimal("10")

    with pytest.raises(ValidationError):
        await TaxService.collect(3, "ABC", "all", is_authorized=True)


async def test_collect_more_than_pool(taxed):
    collected = await TaxService.collect(3, "ABC", "500", is_authorized=True)

    assert collected == Decimal("10")
    assert await balance(3, "ABC") == Decimal("10")


async def test_collect_requires_authorization(taxed):
    with pytest.raises(UnauthorizedError):
        await TaxService.collect(3, "ABC", "all", is_authorized=False)


async def test_collect_without_tax_account(currencies):
    with pytest.raises(NotFoundError):
        await TaxService.collect(3, "XYZ", "all", is_authorized=True)
