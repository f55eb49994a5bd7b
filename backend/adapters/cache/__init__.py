from backend.adapters.cache.base import AbstractCacheStore
from backend.adapters.cache.factory import create_cache_store
from backend.adapters.cache.in_memory import InMemoryCacheStore
from backend.adapters.cache.redis_store import RedisCacheStore

__all__ = [
    "AbstractCacheStore",
    "InMemoryCacheStore",
    "RedisCacheStore",
    "create_cache_store",
]
