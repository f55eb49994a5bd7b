"""Factory for creating the configured cache store."""

from backend.adapters.cache.base import AbstractCacheStore
from backend.adapters.cache.in_memory import InMemoryCacheStore
from backend.adapters.cache.redis_store import RedisCacheStore
from backend.core.config import RedisSettings
from backend.core.errors import ValidationAppError


def create_cache_store(redis_settings: RedisSettings) -> AbstractCacheStore:
    """Instantiate the cache store named by ``REDIS_BACKEND``.

    Args:
        redis_settings: Cache section of the application settings.

    Returns:
        AbstractCacheStore: Unconnected store instance.

    Raises:
        ValidationAppError: If the backend name is unknown.
    """
    backend = redis_settings.backend.lower()

    if backend == "redis":
        return RedisCacheStore.from_settings(redis_settings)

    if backend == "memory":
        return InMemoryCacheStore()

    raise ValidationAppError(
        code="cache_unknown_backend",
        message=f"Unknown cache backend: '{backend}'. Supported backends: redis, memory",
    )
