"""Cache store interface.

Values are opaque strings (the services store JSON). Every method may raise
``StoreUnavailableAppError``; callers treat that as a soft failure and fall
back to recomputing from the source of truth.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class AbstractCacheStore(ABC):
    """Interface for key/value cache stores with per-key expiry."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the value stored under key, or None when absent or expired."""
        raise NotImplementedError

    @abstractmethod
    async def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store value under key; the store drops it after ttl_seconds."""
        raise NotImplementedError

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove key. Deleting a missing key is not an error."""
        raise NotImplementedError

    @abstractmethod
    async def ping(self) -> None:
        """Round-trip to the store; raises if it is unreachable."""
        raise NotImplementedError

    async def uptime_seconds(self) -> int | None:
        """Seconds since the store started, when the backend reports it."""
        return None

    async def connect(self) -> None:
        """Prepare the client. Unreachable stores must not fail startup."""

    async def close(self) -> None:
        """Release the underlying connection."""
