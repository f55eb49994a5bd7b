"""User persistence on top of the relational store."""

from __future__ import annotations

from abc import ABC, abstractmethod

from backend.adapters.relational import UNIQUE_VIOLATION, AbstractRelationalStore
from backend.core.errors import ConflictAppError, QueryAppError
from backend.schemas.users import User

_SELECT_RECENT = """
    SELECT id, name, email, created_at, updated_at
    FROM users
    ORDER BY created_at DESC, id DESC
    LIMIT %s
"""

_INSERT = """
    INSERT INTO users (name, email)
    VALUES (%s, %s)
    RETURNING id, name, email, created_at, updated_at
"""

_COUNT = "SELECT COUNT(*) AS total FROM users"


class AbstractUserRepository(ABC):
    """Storage port for users. Ids are always assigned by the store."""

    @abstractmethod
    async def list_recent(self, limit: int) -> list[User]:
        """Return up to ``limit`` users, newest first."""
        raise NotImplementedError

    @abstractmethod
    async def create(self, name: str, email: str) -> User:
        """Insert a user; raises ConflictAppError when the email is taken."""
        raise NotImplementedError

    @abstractmethod
    async def count(self) -> int:
        raise NotImplementedError


class PostgresUserRepository(AbstractUserRepository):
    """User repository issuing SQL through an ``AbstractRelationalStore``."""

    def __init__(self, store: AbstractRelationalStore) -> None:
        self._store = store

    async def list_recent(self, limit: int) -> list[User]:
        rows = await self._store.query(_SELECT_RECENT, (limit,))
        return [User.model_validate(row) for row in rows]

    async def create(self, name: str, email: str) -> User:
        try:
            rows = await self._store.query(_INSERT, (name, email))
        except QueryAppError as exc:
            if (exc.details or {}).get("sqlstate") == UNIQUE_VIOLATION:
                raise ConflictAppError(
                    code="email_already_exists",
                    message="A user with this email already exists",
                    details={"field": "email"},
                ) from exc
            raise
        return User.model_validate(rows[0])

    async def count(self) -> int:
        rows = await self._store.query(_COUNT)
        return int(rows[0]["total"]) if rows else 0
