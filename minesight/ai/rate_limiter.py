"""
Token bucket used to pace calls to the external classifier.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional


class TokenBucket:
    """
    Async token bucket.

    With capacity 1 and `rate = 1 / interval` this spaces successive
    acquisitions by at least `interval` seconds; the first acquisition
    is immediate.
    """

    def __init__(
        self,
        rate: float,
        capacity: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if rate <= 0:
            raise ValueError("rate must be positive")
        if capacity < 1:
            raise ValueError("capacity must be at least 1")

        self.rate = rate
        self.capacity = capacity
        self._clock = clock
        self._sleep = sleep
        self._tokens = capacity
        self._updated = clock()
        self._lock: Optional[asyncio.Lock] = None

    @classmethod
    def from_interval(cls, interval: float, **kwargs) -> "TokenBucket":
        """One call per `interval` seconds, no bursting."""
        return cls(rate=1.0 / interval, capacity=1.0, **kwargs)

    def _refill(self):
        now = self._clock()
        elapsed = max(0.0, now - self._updated)
        self._tokens = min(self.capacity, self._tokens + elapsed * self.rate)
        self._updated = now

    async def acquire(self):
        """Wait until a token is available and take it."""
        if self._lock is None:
            self._lock = asyncio.Lock()

        async with self._lock:
            while True:
                self._refill()
                if self._tokens >= 1 - 1e-9:
                    self._tokens -= 1
                    return
                await self._sleep((1 - self._tokens) / self.rate)


class NoopLimiter:
    """Limiter that never waits."""

    async def acquire(self):
        return None
