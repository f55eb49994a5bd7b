"""Redis-backed cache store.

Uses a single-connection asyncio client: commands from concurrent requests are
serialized over one socket, so a Redis outage can tie up at most one
connection. Connect and read timeouts keep a stalled server from blocking
requests past ``socket_timeout``.
"""

from __future__ import annotations

import logging

from redis.asyncio import Redis
from redis.exceptions import RedisError

from backend.adapters.cache.base import AbstractCacheStore
from backend.core.config import RedisSettings
from backend.core.errors import StoreUnavailableAppError

logger = logging.getLogger(__name__)


def _unavailable(operation: str, exc: Exception) -> StoreUnavailableAppError:
    return StoreUnavailableAppError(
        code="cache_unavailable",
        message=f"Cache {operation} failed: {exc}",
        details={"store": "redis", "context": {"operation": operation}},
    )


class RedisCacheStore(AbstractCacheStore):
    """Cache store on top of ``redis.asyncio``."""

    def __init__(self, client: Redis) -> None:
        self._client = client

    @classmethod
    def from_settings(cls, redis_settings: RedisSettings) -> "RedisCacheStore":
        """Build a store from the REDIS_* settings group."""
        client = Redis(
            host=redis_settings.host,
            port=redis_settings.port,
            db=redis_settings.db,
            password=redis_settings.password,
            socket_timeout=redis_settings.socket_timeout_seconds,
            socket_connect_timeout=redis_settings.socket_timeout_seconds,
            decode_responses=True,
            single_connection_client=True,
        )
        return cls(client)

    async def get(self, key: str) -> str | None:
        try:
            return await self._client.get(key)
        except RedisError as exc:
            raise _unavailable("get", exc) from exc

    async def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds < 1:
            raise ValueError("ttl_seconds must be >= 1")
        try:
            await self._client.set(key, value, ex=ttl_seconds)
        except RedisError as exc:
            raise _unavailable("set", exc) from exc

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(key)
        except RedisError as exc:
            raise _unavailable("delete", exc) from exc

    async def ping(self) -> None:
        try:
            await self._client.ping()
        except RedisError as exc:
            raise _unavailable("ping", exc) from exc

    async def uptime_seconds(self) -> int | None:
        try:
            info = await self._client.info("server")
        except RedisError as exc:
            raise _unavailable("info", exc) from exc
        uptime = info.get("uptime_in_seconds")
        return int(uptime) if uptime is not None else None

    async def connect(self) -> None:
        try:
            await self._client.ping()
            logger.info("cache.connected", extra={"store": "redis"})
        except RedisError as exc:
            # Startup continues; requests degrade to recompute-from-source
            logger.warning(
                "cache.connect_failed",
                extra={"store": "redis", "error_type": type(exc).__name__, "error_msg": str(exc)},
            )

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("cache.closed", extra={"store": "redis"})
