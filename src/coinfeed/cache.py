"""In-memory get-or-compute cache with per-entry TTL.

Concurrent misses for the same key are coalesced: the first caller computes
while the others wait on that key's asyncio.Lock and then read the stored
value. Cache presence never changes results, only how often upstream
providers are called.

Keys are built from client input (coin ids, day counts), so nothing here is
kept per key beyond its live entry: a key's lock is dropped as soon as no
caller is waiting on it, expired entries are swept on every store, and the
number of entries is bounded.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from coinfeed.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class TTLCache:
    """Async memoization layer keyed by string.

    Args:
        clock: Monotonic time source in seconds (injectable for tests).
        enabled: When False every call goes straight to the factory.
        max_entries: Upper bound on stored entries; the entry closest to
            expiry is evicted first.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        enabled: bool = True,
        max_entries: int = 1024,
    ) -> None:
        if max_entries <= 0:
            raise ValueError(f"max_entries must be positive, got {max_entries}")
        self._clock = clock
        self._enabled = enabled
        self._max_entries = max_entries
        self._entries: dict[str, tuple[Any, float]] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> dict[str, int]:
        """Counters for the health endpoint; ``pending`` is keys with a computation in flight."""
        return {
            "entries": len(self._entries),
            "pending": len(self._locks),
            "hits": self.hits,
            "misses": self.misses,
        }

    def _lookup(self, key: str) -> tuple[bool, Any]:
        entry = self._entries.get(key)
        if entry is None:
            return False, None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return False, None
        return True, value

    async def get_or_compute(
        self,
        key: str,
        ttl_seconds: float,
        factory: Callable[[], Awaitable[T]],
        should_cache: Callable[[T], bool] | None = None,
    ) -> T:
        """Return the cached value for ``key`` or compute, store and return it.

        Args:
            key: Cache key.
            ttl_seconds: Lifetime of a freshly computed value.
            factory: Coroutine function producing the value on a miss.
            should_cache: Optional predicate; values it rejects are returned
                but not stored (e.g. empty fallback results).
        """
        if not self._enabled or ttl_seconds <= 0:
            return await factory()

        found, value = self._lookup(key)
        if found:
            self.hits += 1
            return value

        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                found, value = self._lookup(key)
                if found:
                    self.hits += 1
                    return value

                self.misses += 1
                value = await factory()
                if should_cache is None or should_cache(value):
                    self._store(key, value, ttl_seconds)
                else:
                    logger.debug("cache_store_skipped", key=key)
                return value
        finally:
            self._release(key)

    def _release(self, key: str) -> None:
        remaining = self._waiters[key] - 1
        if remaining:
            self._waiters[key] = remaining
        else:
            del self._waiters[key]
            del self._locks[key]

    def _store(self, key: str, value: Any, ttl_seconds: float) -> None:
        now = self._clock()
        expired = [k for k, (_, expires_at) in self._entries.items() if now >= expires_at]
        for k in expired:
            del self._entries[k]
        self._entries.pop(key, None)
        while len(self._entries) >= self._max_entries:
            oldest = min(self._entries, key=lambda k: self._entries[k][1])
            del self._entries[oldest]
            logger.debug("cache_evicted", key=oldest)
        self._entries[key] = (value, now + ttl_seconds)
