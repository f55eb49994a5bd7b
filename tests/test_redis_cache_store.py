"""Tests for RedisCacheStore against a mocked ``redis.asyncio`` client."""

from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from backend.adapters.cache import RedisCacheStore
from backend.core.config import RedisSettings
from backend.core.errors import StoreUnavailableAppError


@pytest.fixture
def redis_client() -> AsyncMock:
    client = AsyncMock()
    client.get.return_value = None
    client.info.return_value = {"uptime_in_seconds": 86400, "redis_version": "7.2.4"}
    return client


@pytest.fixture
def store(redis_client: AsyncMock) -> RedisCacheStore:
    return RedisCacheStore(redis_client)


@pytest.mark.asyncio
async def test_set_with_ttl_uses_expiry(store, redis_client):
    await store.set_with_ttl("system:status", "{}", 60)

    redis_client.set.assert_awaited_once_with("system:status", "{}", ex=60)


@pytest.mark.asyncio
async def test_get_returns_value(store, redis_client):
    redis_client.get.return_value = '{"services": []}'

    assert await store.get("system:status") == '{"services": []}'


@pytest.mark.asyncio
async def test_rejects_non_positive_ttl(store, redis_client):
    with pytest.raises(ValueError):
        await store.set_with_ttl("k", "v", 0)
    redis_client.set.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize("method,args", [("get", ("k",)), ("delete", ("k",)), ("ping", ())])
async def test_redis_errors_become_store_unavailable(store, redis_client, method, args):
    getattr(redis_client, method).side_effect = RedisConnectionError("Connection refused")

    with pytest.raises(StoreUnavailableAppError) as exc_info:
        await getattr(store, method)(*args)

    assert exc_info.value.code == "cache_unavailable"
    assert exc_info.value.details["store"] == "redis"


@pytest.mark.asyncio
async def test_timeout_on_set_becomes_store_unavailable(store, redis_client):
    redis_client.set.side_effect = RedisTimeoutError("Timeout reading from socket")

    with pytest.raises(StoreUnavailableAppError):
        await store.set_with_ttl("k", "v", 30)


@pytest.mark.asyncio
async def test_uptime_reads_server_info(store, redis_client):
    assert await store.uptime_seconds() == 86400
    redis_client.info.assert_awaited_once_with("server")


@pytest.mark.asyncio
async def test_connect_tolerates_unreachable_server(store, redis_client):
    redis_client.ping.side_effect = RedisConnectionError("Connection refused")

    await store.connect()

    redis_client.ping.assert_awaited_once()


@pytest.mark.asyncio
async def test_close_releases_client(store, redis_client):
    await store.close()

    redis_client.aclose.assert_awaited_once()


def test_from_settings_builds_client():
    settings = RedisSettings(host="cache", port=6380, db=2, socket_timeout_seconds=1.5)

    store = RedisCacheStore.from_settings(settings)

    kwargs = store._client.connection_pool.connection_kwargs
    assert kwargs["host"] == "cache"
    assert kwargs["port"] == 6380
    assert kwargs["db"] == 2
    assert kwargs["socket_timeout"] == 1.5
    assert settings.url == "redis://cache:6380/2"
