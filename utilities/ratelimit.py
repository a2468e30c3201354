import asyncio
import logging
import time
from collections import deque

logger = logging.getLogger(__name__)


class SlidingWindowLimiter:
    """
    Admits at most ``max_requests`` within any ``window`` seconds.
    """

    def __init__(self, max_requests: int, window: float, clock=time.monotonic):
        self.max_requests = max_requests
        self.window = window
        self._clock = clock
        self._requests = deque()
        self._lock = asyncio.Lock()

    def _evict(self, now: float):
        while self._requests and now - self._requests[0] >= self.window:
            self._requests.popleft()

    def try_acquire(self) -> float:
        """
        Record a request if there is room.

        Returns:
            float: 0 when admitted, otherwise seconds until a slot frees up.
        """
        now = self._clock()
        self._evict(now)
        if len(self._requests) >= self.max_requests:
            return max(self.window - (now - self._requests[0]), 0.001)
        self._requests.append(now)
        return 0.0

    async def acquire(self):
        """Wait until the request can be admitted."""
        async with self._lock:
            while True:
                wait = self.try_acquire()
                if wait == 0:
                    return
                logger.debug("Rate limit reached, waiting %.0fms", wait * 1000)
                await asyncio.sleep(wait)


class CooldownTracker:
    """Per-(actor, operation) cooldown."""

    def __init__(self, seconds: float, clock=time.monotonic):
        self.seconds = seconds
        self._clock = clock
        self._last_used = {}
        self._last_sweep = clock()

    def __len__(self):
        return len(self._last_used)

    def _sweep(self, now: float):
        expired = [key for key, last in self._last_used.items() if now - last >= self.seconds]
        for key in expired:
            del self._last_used[key]
        self._last_sweep = now

    def check(self, actor_id: int, operation: str) -> float:
        """
        Returns:
            float: 0 if the actor may proceed (and starts a new cooldown),
            otherwise the seconds remaining.
        """
        now = self._clock()
        # Expired cooldowns are dropped at most once per cooldown period
        if now - self._last_sweep >= self.seconds:
            self._sweep(now)
        key = (actor_id, operation)
        last = self._last_used.get(key)
        if last is not None and now - last < self.seconds:
            return self.seconds - (now - last)
        self._last_used[key] = now
        return 0.0
