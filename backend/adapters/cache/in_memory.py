"""In-memory TTL cache store.

Selected with ``REDIS_BACKEND=memory`` for single-process local runs, and used
by the test-suite. Keeps the same expiry semantics as Redis: an entry is gone
once its TTL has elapsed, and overwriting a key resets its TTL.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable

from backend.adapters.cache.base import AbstractCacheStore

logger = logging.getLogger(__name__)


@dataclass
class CacheItem:
    """Container for cached values with expiration metadata."""

    value: str
    expires_at: float


class InMemoryCacheStore(AbstractCacheStore):
    """Thread-safe, in-memory TTL cache with LRU eviction.

    Attributes:
        max_entries: Maximum number of cached items (None for unlimited).
    """

    def __init__(
        self,
        *,
        max_entries: int | None = 1024,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._max_entries = max_entries
        self._clock = clock
        self._started_at = clock()
        self._store: OrderedDict[str, CacheItem] = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"InMemoryCacheStore(max_entries={self._max_entries}, "
            f"size={len(self._store)}, hits={self._hits}, misses={self._misses}, "
            f"evictions={self._evictions})"
        )

    async def get(self, key: str) -> str | None:
        with self._lock:
            item = self._store.get(key)
            if item is None:
                self._misses += 1
                return None

            if self._clock() >= item.expires_at:
                self._evict_single(key)
                self._misses += 1
                logger.debug("cache.expired", extra={"cache_key": key})
                return None

            self._hits += 1
            self._store.move_to_end(key)
            return item.value

    async def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds < 1:
            raise ValueError("ttl_seconds must be >= 1")

        with self._lock:
            self._evict_expired_locked()
            self._store[key] = CacheItem(value=value, expires_at=self._clock() + ttl_seconds)
            self._store.move_to_end(key)
            self._evict_if_over_capacity_locked()

    async def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)

    async def ping(self) -> None:
        return None

    async def uptime_seconds(self) -> int | None:
        return int(self._clock() - self._started_at)

    def stats(self) -> dict[str, int | None]:
        """Return lightweight cache metrics without exposing values."""

        with self._lock:
            return {
                "max_entries": self._max_entries,
                "entries": len(self._store),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    def _evict_single(self, key: str) -> None:
        if key in self._store:
            self._store.pop(key, None)
            self._evictions += 1

    def _evict_expired_locked(self) -> None:
        now = self._clock()
        expired_keys = [k for k, item in self._store.items() if item.expires_at <= now]
        for key in expired_keys:
            self._evict_single(key)

    def _evict_if_over_capacity_locked(self) -> None:
        if self._max_entries is None:
            return

        while len(self._store) > self._max_entries:
            # popitem(last=False) removes the least recently used entry
            self._store.popitem(last=False)
            self._evictions += 1
