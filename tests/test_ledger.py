from decimal import Decimal

import pytest

from conftest import fund
from ledger import Ledger
from utilities.exceptions import ThrottledError
from utilities.ratelimit import CooldownTracker, SlidingWindowLimiter


async def test_facade_settles_swap(currencies):
    ledger = Ledger(CooldownTracker(0), SlidingWindowLimiter(100, 1.0))
    await fund(1, "ABC", "100")
    await fund(2, "XYZ", "40")

    swap = await ledger.create_swap(1, "50", "ABC", "40", "XYZ", taker_id=2)
    result = await ledger.accept_swap(2, swap.swap_id)
    status = await ledger.swap_status(1, swap.swap_id)
    quote = await ledger.price(1, "ABC", "XYZ")

    assert result.status == "accepted"
    assert status.status == "accepted"
    assert float(quote.last_price) == pytest.approx(0.8)


async def test_cooldown_rejects_repeat(currencies):
    ledger = Ledger(CooldownTracker(60), SlidingWindowLimiter(100, 1.0))
    await fund(1, "ABC", "100")

    await ledger.transfer(1, 2, "ABC", "1")
    with pytest.raises(ThrottledError) as exc_info:
        await ledger.transfer(1, 2, "ABC", "1")

    assert exc_info.value.retry_after > 0
    assert exc_info.value.to_dict()["kind"] == "throttled"


async def test_global_limit(currencies):
    ledger = Ledger(CooldownTracker(0), SlidingWindowLimiter(1, 60))
    await fund(1, "ABC", "100")

    await ledger.transfer(1, 2, "ABC", "1")
    with pytest.raises(ThrottledError):
        await ledger.transfer(3, 2, "ABC", "1")


def test_uses_given_limiters():
    cooldown = CooldownTracker(0)
    limiter = SlidingWindowLimiter(1, 1.0)

    ledger = Ledger(cooldown, limiter)

    assert ledger.cooldown is cooldown
    assert ledger.limiter is limiter
