"""Async token bucket used to throttle outbound crawler requests."""

import asyncio
import logging
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class TokenBucket:
    """Token bucket with a refill ``rate`` (tokens per second) and ``capacity``.

    The bucket starts full, so the first ``capacity`` acquisitions never wait.
    With ``capacity=1`` it behaves like a fixed delay of ``1 / rate`` seconds
    between calls. A non-positive rate disables throttling.
    """

    def __init__(
        self,
        rate: float,
        capacity: int = 1,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Callable[[float], object]] = None,
    ):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.rate = rate
        self.capacity = capacity
        self._clock = clock
        self._sleep = sleep or asyncio.sleep
        self._tokens = float(capacity)
        self._last_refill = clock()
        self._lock = asyncio.Lock()

    @property
    def tokens(self) -> float:
        return self._tokens

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._last_refill)
        self._tokens = min(self.capacity, self._tokens + elapsed * self.rate)
        self._last_refill = now

    async def acquire(self) -> float:
        """Take one token, sleeping until one is available.

        Returns the number of seconds spent waiting.
        """
        if self.rate <= 0:
            return 0.0

        waited = 0.0
        async with self._lock:
            self._refill()
            while self._tokens < 1:
                wait_time = (1 - self._tokens) / self.rate
                logger.debug(f"Rate limited: sleeping {wait_time:.2f}s")
                await self._sleep(wait_time)
                waited += wait_time
                self._refill()
            self._tokens -= 1
        return waited
