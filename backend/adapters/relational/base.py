"""Relational store interface.

Services talk to the database only through ``query`` and ``execute`` so the
pool implementation can be swapped (or faked in tests) without touching SQL
call sites.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping, Sequence

Params = Sequence[Any] | Mapping[str, Any] | None
Row = dict[str, Any]


class AbstractRelationalStore(ABC):
    """Interface for pooled relational stores.

    Both operations raise ``ConnectionAppError`` when no connection can be
    obtained within the configured bound, and ``QueryAppError`` when the
    server rejects the statement.
    """

    @abstractmethod
    async def query(self, sql: str, params: Params = None) -> list[Row]:
        """Run a statement and return its rows as dicts (empty if none)."""
        raise NotImplementedError

    @abstractmethod
    async def execute(self, sql: str, params: Params = None) -> int:
        """Run a statement that returns no rows; return the affected row count."""
        raise NotImplementedError

    async def open(self) -> None:
        """Start the pool. Must not fail when the server is down."""

    async def close(self) -> None:
        """Close all pooled connections."""

    def stats(self) -> dict[str, int]:
        """Pool counters for diagnostics."""
        return {}

    def connection_label(self) -> str:
        """Connection target safe for logs (no credentials)."""
        return "unknown"
