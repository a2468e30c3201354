import logging
from datetime import timedelta

import config
from services.accountservice import AccountService
from services.credentialservice import CredentialService
from services.currencyservice import CurrencyService
from services.swapservice import SwapService
from services.taxservice import TaxService
from services.tradelogservice import TradeLogService
from services.wiretransferservice import WireTransferService
from utilities.exceptions import ThrottledError
from utilities.ratelimit import CooldownTracker, SlidingWindowLimiter

logger = logging.getLogger(__name__)


class Ledger:
    """
    Entry point for the command layer.

    Every call takes an already resolved actor id and passes the per-actor
    cooldown and the global request cap before it reaches a service.
    """

    def __init__(self, cooldown: CooldownTracker | None = None, limiter: SlidingWindowLimiter | None = None):
        if cooldown is None:
            cooldown = CooldownTracker(config.COMMAND_COOLDOWN_SECONDS)
        if limiter is None:
            limiter = SlidingWindowLimiter(config.GLOBAL_RATE_LIMIT, config.GLOBAL_RATE_WINDOW)
        self.cooldown = cooldown
        self.limiter = limiter

    def _throttle(self, actor_id: int, operation: str):
        remaining = self.cooldown.check(actor_id, operation)
        if remaining:
            raise ThrottledError(f"Slow down, try again in {remaining:.1f}s", retry_after=remaining)
        wait = self.limiter.try_acquire()
        if wait:
            logger.warning("Global rate limit reached, rejecting %s from %s", operation, actor_id)
            raise ThrottledError("The ledger is busy, try again shortly", retry_after=wait)

    async def create_swap(self, actor_id: int, maker_amount, maker_ticker: str, taker_amount, taker_ticker: str,
                          taker_id: int | None = None):
        self._throttle(actor_id, "create_swap")
        return await SwapService.create_swap(actor_id, maker_amount, maker_ticker,
                                             taker_amount, taker_ticker, taker_id)

    async def accept_swap(self, actor_id: int, swap_id: int):
        self._throttle(actor_id, "accept_swap")
        return await SwapService.accept_swap(actor_id, swap_id)

    async def deny_swap(self, actor_id: int, swap_id: int):
        self._throttle(actor_id, "deny_swap")
        return await SwapService.deny_swap(actor_id, swap_id)

    async def swap_status(self, actor_id: int, swap_id: int):
        self._throttle(actor_id, "swap_status")
        return await SwapService.get_swap_status(swap_id)

    async def wire_in(self, actor_id: int, amount, ticker: str):
        self._throttle(actor_id, "wire")
        return await WireTransferService.wire_in(actor_id, amount, ticker)

    async def wire_out(self, actor_id: int, amount, ticker: str):
        self._throttle(actor_id, "wire")
        return await WireTransferService.wire_out(actor_id, amount, ticker)

    async def set_credential(self, actor_id: int, guild_id: int, token: str, is_authorized: bool):
        self._throttle(actor_id, "set_credential")
        await CredentialService.set_credential(guild_id, token, is_authorized)

    async def transfer(self, actor_id: int, receiver_id: int, ticker: str, amount):
        self._throttle(actor_id, "transfer")
        return await AccountService.transfer(actor_id, receiver_id, ticker, amount)

    async def mint(self, actor_id: int, receiver_id: int, amount, ticker: str, is_authorized: bool):
        self._throttle(actor_id, "mint")
        return await CurrencyService.mint(receiver_id, amount, ticker, is_authorized)

    async def collect_tax(self, actor_id: int, ticker: str, amount, is_authorized: bool):
        self._throttle(actor_id, "collect_tax")
        return await TaxService.collect(actor_id, ticker, amount, is_authorized)

    async def set_tax(self, actor_id: int, ticker: str, percentage: int, is_authorized: bool):
        self._throttle(actor_id, "set_tax")
        return await TaxService.set_percentage(ticker, percentage, is_authorized)

    async def price(self, actor_id: int, base_ticker: str, quote_ticker: str, timeframe: str = "1d"):
        self._throttle(actor_id, "price")
        return await TradeLogService.get_price(base_ticker, quote_ticker, timeframe)

    async def price_change(self, actor_id: int, base_ticker: str, quote_ticker: str, window: timedelta):
        self._throttle(actor_id, "price")
        return await TradeLogService.price_change(base_ticker, quote_ticker, window)
