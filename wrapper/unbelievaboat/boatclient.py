import asyncio
import json
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

import aiohttp

import config
from utilities.exceptions import (
    ExternalAuthError, ExternalBadRequestError, ExternalNotFoundError, ExternalRateLimitedError,
    ExternalServerError, ExternalUnknownError
)
from utilities.ratelimit import SlidingWindowLimiter

logger = logging.getLogger(__name__)

# Shared by every client instance, the quota is per bot and not per token
boat_limiter = SlidingWindowLimiter(config.BOAT_RATE_LIMIT, config.BOAT_RATE_WINDOW)


@dataclass(frozen=True)
class BoatBalance:
    cash: int
    bank: int
    total: int

    @classmethod
    def from_json(cls, data: dict) -> "BoatBalance":
        cash = _to_int(data.get("cash"))
        bank = _to_int(data.get("bank"))
        total = _to_int(data.get("total")) if data.get("total") is not None else cash + bank
        return cls(cash=cash, bank=bank, total=total)


def _to_int(value) -> int:
    if value is None:
        return 0
    try:
        return int(Decimal(str(value)))
    except (InvalidOperation, ValueError) as e:
        raise ExternalUnknownError(f"Unexpected balance value from UnbelievaBoat: {value!r}") from e


def raise_for_status(status: int, body: str):
    """
    Maps a non-2xx UnbelievaBoat response onto the ExternalApiError family.
    """
    try:
        data = json.loads(body) if body else {}
    except ValueError:
        data = {}
    if not isinstance(data, dict):
        data = {}
    message = data.get("message") or data.get("error") or body or f"HTTP {status}"

    if status == 400:
        raise ExternalBadRequestError(f"Bad request: {message}", status=status)
    if status in (401, 403):
        raise ExternalAuthError(f"UnbelievaBoat rejected the credential: {message}", status=status)
    if status == 404:
        raise ExternalNotFoundError(f"UnbelievaBoat user or guild not found: {message}", status=status)
    if status == 429:
        retry_after_ms = data.get("retry_after", 1000)
        is_global = bool(data.get("global", data.get("is_global", False)))
        logger.warning("UnbelievaBoat rate limited (global: %s), retry after %s ms", is_global, retry_after_ms)
        raise ExternalRateLimitedError(
            "UnbelievaBoat rate limit reached",
            retry_after=float(retry_after_ms) / 1000,
            is_global=is_global,
        )
    if 500 <= status <= 599:
        logger.warning("UnbelievaBoat server error %s: %s", status, body)
        raise ExternalServerError(f"UnbelievaBoat server error: {message}", status=status)
    raise ExternalUnknownError(f"Unexpected UnbelievaBoat response {status}: {message}", status=status)


class BoatClient:
    """
    Minimal UnbelievaBoat API client. Every request waits on the shared rate limiter.
    """

    def __init__(self, auth_token: str, base_url: str | None = None,
                 limiter: SlidingWindowLimiter | None = None, timeout: float = 10):
        self._auth_token = auth_token
        self.base_url = (base_url or config.BOAT_API_BASE_URL).rstrip("/")
        self.limiter = limiter or boat_limiter
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    def __repr__(self):
        # Keep the token out of logs and tracebacks
        return f"<BoatClient(base_url={self.base_url})>"

    def _url(self, guild_id: int, user_id: int) -> str:
        return f"{self.base_url}/guilds/{guild_id}/users/{user_id}"

    async def _request(self, method: str, guild_id: int, user_id: int, payload: dict | None = None) -> dict:
        headers = {
            "accept": "application/json",
            "Authorization": f"{self._auth_token}"
        }
        if payload is not None:
            headers["content-type"] = "application/json"

        await self.limiter.acquire()
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.request(method, self._url(guild_id, user_id),
                                           headers=headers, json=payload) as response:
                    body = await response.text()
                    if response.status < 200 or response.status >= 300:
                        raise_for_status(response.status, body)
                    return json.loads(body) if body else {}
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ExternalUnknownError(f"Request to UnbelievaBoat failed: {e}") from e
        except ValueError as e:
            raise ExternalUnknownError(f"Failed to parse UnbelievaBoat response: {e}") from e

    async def get_balance(self, guild_id: int, user_id: int) -> BoatBalance:
        data = await self._request("GET", guild_id, user_id)
        return BoatBalance.from_json(data)

    async def set_balance(self, guild_id: int, user_id: int,
                          cash: int | None = None, bank: int | None = None) -> BoatBalance:
        """
        Overwrites cash and/or bank. This is a full override, not an increment.
        """
        payload = {}
        if cash is not None:
            payload["cash"] = int(cash)
        if bank is not None:
            payload["bank"] = int(bank)
        data = await self._request("PUT", guild_id, user_id, payload)
        return BoatBalance.from_json(data)
