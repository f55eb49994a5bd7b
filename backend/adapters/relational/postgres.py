"""PostgreSQL store on top of a bounded ``psycopg_pool`` async pool.

Pool limits:
- ``max_size`` caps concurrent server connections.
- ``timeout`` bounds how long a request waits for a free connection; past it
  the caller gets ``ConnectionAppError`` instead of queueing forever.
- ``max_idle`` closes idle connections above ``min_size``.
- ``connect_timeout`` bounds each new server connection.

Reconnection after a server restart is handled by the pool itself; callers
never retry.
"""

from __future__ import annotations

import logging

import psycopg
from psycopg.conninfo import make_conninfo
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool, PoolTimeout

from backend.adapters.relational.base import AbstractRelationalStore, Params, Row
from backend.core.config import DatabaseSettings
from backend.core.errors import ConnectionAppError, QueryAppError

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"

USERS_DDL = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id SERIAL PRIMARY KEY,
        name VARCHAR(255) NOT NULL,
        email VARCHAR(255) UNIQUE NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_users_created_at ON users(created_at)",
)


def translate_error(exc: Exception, *, label: str) -> ConnectionAppError | QueryAppError:
    """Map a psycopg/pool exception onto the application error taxonomy.

    Pool checkout timeouts and errors raised before the server answered
    (no SQLSTATE) mean the store is unreachable. Anything the server itself
    rejected is a query error and keeps its SQLSTATE for callers that need to
    tell constraint violations apart.
    """
    if isinstance(exc, PoolTimeout):
        return ConnectionAppError(
            code="db_pool_exhausted",
            message="Timed out waiting for a database connection",
            details={"store": label},
        )

    sqlstate = getattr(exc, "sqlstate", None)
    if isinstance(exc, psycopg.OperationalError) and sqlstate is None:
        return ConnectionAppError(
            code="db_unreachable",
            message=f"Database connection failed: {exc}",
            details={"store": label},
        )

    details = {"store": label}
    if sqlstate:
        details["sqlstate"] = sqlstate
    return QueryAppError(
        code="db_query_failed",
        message=f"Database query failed: {exc}",
        details=details,
    )


class PostgresStore(AbstractRelationalStore):
    """Relational store backed by ``psycopg_pool.AsyncConnectionPool``."""

    def __init__(self, pool: AsyncConnectionPool, *, label: str = "postgres") -> None:
        self._pool = pool
        self._label = label

    @classmethod
    def from_settings(cls, db_settings: DatabaseSettings) -> "PostgresStore":
        """Build an unopened pool from the DB_* settings group."""
        pool = AsyncConnectionPool(
            conninfo=make_conninfo(**db_settings.connection_kwargs()),
            min_size=min(db_settings.pool_min_size, db_settings.pool_max_size),
            max_size=db_settings.pool_max_size,
            timeout=db_settings.pool_timeout_seconds,
            max_idle=db_settings.idle_timeout_seconds,
            check=AsyncConnectionPool.check_connection,
            name="backend",
            open=False,
        )
        return cls(pool, label=db_settings.connection_label())

    async def query(self, sql: str, params: Params = None) -> list[Row]:
        try:
            async with self._pool.connection() as conn:
                async with conn.cursor(row_factory=dict_row) as cur:
                    await cur.execute(sql, params)
                    if cur.description is None:
                        return []
                    return await cur.fetchall()
        except (PoolTimeout, psycopg.Error) as exc:
            raise translate_error(exc, label=self._label) from exc

    async def execute(self, sql: str, params: Params = None) -> int:
        try:
            async with self._pool.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(sql, params)
                    rowcount = cur.rowcount
                await conn.commit()
                return rowcount
        except (PoolTimeout, psycopg.Error) as exc:
            raise translate_error(exc, label=self._label) from exc

    async def ensure_schema(self) -> None:
        """Create the users table and indexes if they are missing."""
        for statement in USERS_DDL:
            await self.execute(statement)
        logger.info("db.schema_ready", extra={"target": self._label})

    async def open(self) -> None:
        # wait=False: an unreachable server must not block startup
        await self._pool.open(wait=False)
        logger.info(
            "db.pool_opened",
            extra={"target": self._label, "max_size": self._pool.max_size},
        )

    async def close(self) -> None:
        await self._pool.close()
        logger.info("db.pool_closed", extra={"target": self._label})

    def stats(self) -> dict[str, int]:
        return self._pool.get_stats()

    def connection_label(self) -> str:
        return self._label
