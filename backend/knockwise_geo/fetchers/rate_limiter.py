"""Per-provider request spacing"""
import asyncio
import logging
import time

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Keeps consecutive requests at least `min_interval` seconds apart.

    Each fetcher owns its own limiter, so two resolvers (or two tests) never
    share timing state. The lock keeps the spacing contract when several
    coroutines use the same fetcher concurrently.
    """

    def __init__(self, min_interval: float, clock=time.monotonic, sleep=asyncio.sleep):
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._last_request_time = None
        self._lock = asyncio.Lock()

    async def wait(self):
        async with self._lock:
            if self._last_request_time is not None:
                elapsed = self._clock() - self._last_request_time
                if elapsed < self.min_interval:
                    delay = self.min_interval - elapsed
                    logger.debug(f"Rate limit: sleeping {delay:.3f}s")
                    await self._sleep(delay)
            self._last_request_time = self._clock()

    def reset(self):
        self._last_request_time = None
