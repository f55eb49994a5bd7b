"""Unit tests for the in-memory cache store."""

import asyncio
import threading

import pytest

from backend.adapters.cache import InMemoryCacheStore, create_cache_store
from backend.core.config import RedisSettings
from backend.core.errors import ValidationAppError


class FakeTime:
    """Deterministic clock used to test expiration logic."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def time(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


def test_set_and_get_updates_hit_miss_counters() -> None:
    cache = InMemoryCacheStore()

    assert asyncio.run(cache.get("missing")) is None

    asyncio.run(cache.set_with_ttl("key", '{"v": 1}', 10))

    assert asyncio.run(cache.get("key")) == '{"v": 1}'

    stats = cache.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1


def test_entry_is_gone_exactly_at_ttl() -> None:
    fake_time = FakeTime()
    cache = InMemoryCacheStore(clock=fake_time.time)
    asyncio.run(cache.set_with_ttl("key", "value", 5))

    fake_time.advance(4.9)
    assert asyncio.run(cache.get("key")) == "value"

    fake_time.advance(0.1)
    assert asyncio.run(cache.get("key")) is None
    assert cache.stats()["evictions"] == 1


def test_overwrite_resets_ttl() -> None:
    fake_time = FakeTime()
    cache = InMemoryCacheStore(clock=fake_time.time)
    asyncio.run(cache.set_with_ttl("key", "old", 5))

    fake_time.advance(4)
    asyncio.run(cache.set_with_ttl("key", "new", 5))

    fake_time.advance(4)
    assert asyncio.run(cache.get("key")) == "new"


def test_delete_removes_entry_and_ignores_missing_key() -> None:
    cache = InMemoryCacheStore()
    asyncio.run(cache.set_with_ttl("key", "value", 10))

    asyncio.run(cache.delete("key"))
    asyncio.run(cache.delete("never-set"))

    assert asyncio.run(cache.get("key")) is None


def test_rejects_non_positive_ttl() -> None:
    cache = InMemoryCacheStore()

    with pytest.raises(ValueError):
        asyncio.run(cache.set_with_ttl("key", "value", 0))


def test_lru_eviction_removes_least_recently_used() -> None:
    cache = InMemoryCacheStore(max_entries=2)
    asyncio.run(cache.set_with_ttl("a", "1", 100))
    asyncio.run(cache.set_with_ttl("b", "2", 100))

    # Access "a" so that "b" becomes least recently used
    assert asyncio.run(cache.get("a")) == "1"

    asyncio.run(cache.set_with_ttl("c", "3", 100))

    assert asyncio.run(cache.get("a")) == "1"
    assert asyncio.run(cache.get("c")) == "3"
    assert asyncio.run(cache.get("b")) is None


def test_ping_and_uptime() -> None:
    fake_time = FakeTime()
    cache = InMemoryCacheStore(clock=fake_time.time)
    fake_time.advance(125)

    assert asyncio.run(cache.ping()) is None
    assert asyncio.run(cache.uptime_seconds()) == 125


def test_thread_safety_under_concurrent_sets() -> None:
    cache = InMemoryCacheStore(max_entries=None)
    total_keys = 50

    def _writer(idx: int) -> None:
        asyncio.run(cache.set_with_ttl(f"k-{idx}", str(idx), 30))

    threads = [threading.Thread(target=_writer, args=(i,)) for i in range(total_keys)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert cache.stats()["entries"] == total_keys
    assert asyncio.run(cache.get("k-0")) == "0"
    assert asyncio.run(cache.get("k-49")) == "49"


def test_factory_selects_backend() -> None:
    assert isinstance(create_cache_store(RedisSettings(backend="memory")), InMemoryCacheStore)

    with pytest.raises(ValidationAppError) as exc_info:
        create_cache_store(RedisSettings(backend="memcached"))
    assert exc_info.value.code == "cache_unknown_backend"
