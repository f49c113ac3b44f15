"""Keyed in-memory cache with a fixed time-to-live"""
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Tuple

from ..config import LOCATION_CACHE_TTL

logger = logging.getLogger(__name__)


class TTLCache:
    """
    Entries expire `ttl` seconds after they were fetched and are dropped
    the next time they are looked up; clear() wipes everything. Concurrent
    misses on the same key are not coalesced.
    """

    def __init__(self, ttl: float = LOCATION_CACHE_TTL, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return False
        if self._clock() - entry[0] >= self.ttl:
            del self._entries[key]
            return False
        return True

    def get(self, key: str, default=None):
        if key in self:
            return self._entries[key][1]
        return default

    def set(self, key: str, value: Any, timestamp: float = None):
        self._entries[key] = (self._clock() if timestamp is None else timestamp, value)

    async def get_or_fetch(self, key: str, fetch: Callable[[], Awaitable[Any]]) -> Any:
        """Cached value for `key`, or the awaited result of `fetch()`; failures are not cached"""
        if key in self:
            logger.debug(f"Cache hit: {key}")
            return self._entries[key][1]

        started = self._clock()
        value = await fetch()
        self.set(key, value, timestamp=started)
        return value

    def clear(self):
        self._entries.clear()

    def stats(self) -> Dict[str, Any]:
        keys: List[str] = list(self._entries)
        return {"size": len(keys), "keys": keys}
