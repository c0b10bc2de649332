"""Minimum-spacing rate limiter shared by every outbound rate request."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

DEFAULT_MIN_INTERVAL_SECONDS = 1.0


class RateLimiter:
    """Lets one caller through per min_interval; waiting callers queue in FIFO order."""

    def __init__(
        self,
        min_interval: float = DEFAULT_MIN_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_acquired: float | None = None

    async def acquire(self) -> None:
        """Wait until min_interval has passed since the previous window started."""
        async with self._lock:
            wait_time = self.get_wait_time()
            if wait_time > 0:
                logger.debug(f'Rate limit reached. Waiting for {wait_time:.2f} seconds.')
                await self._sleep(wait_time)
            self._last_acquired = self._clock()

    def get_wait_time(self) -> float:
        """Seconds a caller arriving now would have to wait, ignoring queued callers."""
        if self._last_acquired is None:
            return 0.0
        return max(0.0, self._last_acquired + self.min_interval - self._clock())
