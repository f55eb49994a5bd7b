"""Pytest configuration and fixtures shared across all test modules.

Stores are replaced by in-process fakes implementing the adapter interfaces,
so no PostgreSQL or Redis server is needed.
"""

import asyncio
import os
from datetime import datetime, timedelta, timezone

# Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"

import pytest
from fastapi.testclient import TestClient

from backend.adapters.cache import InMemoryCacheStore
from backend.adapters.relational import AbstractRelationalStore
from backend.core.app_factory import create_app
from backend.core.config import AppSettings, LogSettings, Settings
from backend.core.errors import ConflictAppError, ConnectionAppError, StoreUnavailableAppError
from backend.repositories.users import AbstractUserRepository
from backend.schemas.users import User
from backend.services.status_service import StatusAggregator
from backend.utils.request_stats import RequestStats


class FakeRelationalStore(AbstractRelationalStore):
    """Answers the liveness probe; can be switched to unreachable."""

    def __init__(self, uptime_seconds: int = 9240) -> None:
        self.uptime_seconds = uptime_seconds
        self.down = False
        self.queries: list[str] = []
        self.opened = False
        self.closed = False

    async def query(self, sql, params=None):
        self.queries.append(sql)
        if self.down:
            raise ConnectionAppError(code="db_unreachable", message="connection refused")
        return [{"uptime_seconds": self.uptime_seconds}]

    async def execute(self, sql, params=None):
        await self.query(sql, params)
        return 0

    async def open(self) -> None:
        self.opened = True

    async def close(self) -> None:
        self.closed = True


class FakeUserRepository(AbstractUserRepository):
    """In-memory users table with store-assigned ids and a unique email."""

    def __init__(self) -> None:
        self._rows: list[User] = []
        self._next_id = 1
        self._base = datetime(2026, 1, 1, tzinfo=timezone.utc)
        self.down = False
        self.count_calls = 0

    async def list_recent(self, limit: int) -> list[User]:
        self._raise_if_down()
        ordered = sorted(self._rows, key=lambda u: (u.created_at, u.id), reverse=True)
        return ordered[:limit]

    async def create(self, name: str, email: str) -> User:
        self._raise_if_down()
        # Yield so concurrent creates interleave like real I/O
        await asyncio.sleep(0)
        if any(u.email == email for u in self._rows):
            raise ConflictAppError(code="email_already_exists", message="duplicate")
        created_at = self._base + timedelta(seconds=self._next_id)
        user = User(
            id=self._next_id,
            name=name,
            email=email,
            created_at=created_at,
            updated_at=created_at,
        )
        self._next_id += 1
        self._rows.append(user)
        return user

    async def count(self) -> int:
        self._raise_if_down()
        self.count_calls += 1
        return len(self._rows)

    def _raise_if_down(self) -> None:
        if self.down:
            raise ConnectionAppError(code="db_unreachable", message="connection refused")


class FlakyCacheStore(InMemoryCacheStore):
    """In-memory cache store that can be switched to unreachable."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.down = False

    def _check(self) -> None:
        if self.down:
            raise StoreUnavailableAppError(code="cache_unavailable", message="Connection refused")

    async def get(self, key):
        self._check()
        return await super().get(key)

    async def set_with_ttl(self, key, value, ttl_seconds):
        self._check()
        await super().set_with_ttl(key, value, ttl_seconds)

    async def delete(self, key):
        self._check()
        await super().delete(key)

    async def ping(self):
        self._check()

    async def uptime_seconds(self):
        self._check()
        return await super().uptime_seconds()


class FakeClock:
    """Deterministic monotonic clock used to test expiration logic."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def relational_store() -> FakeRelationalStore:
    return FakeRelationalStore()


@pytest.fixture
def user_repository() -> FakeUserRepository:
    return FakeUserRepository()


@pytest.fixture
def cache_store(clock: FakeClock) -> FlakyCacheStore:
    return FlakyCacheStore(clock=clock)


@pytest.fixture
def aggregator(
    relational_store: FakeRelationalStore,
    cache_store: FlakyCacheStore,
    user_repository: FakeUserRepository,
) -> StatusAggregator:
    return StatusAggregator(
        relational_store=relational_store,
        cache_store=cache_store,
        user_repository=user_repository,
        request_stats=RequestStats(),
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        app=AppSettings(rate_limit_requests=100, rate_limit_window_seconds=900),
        log=LogSettings(level="WARNING"),
    )


@pytest.fixture
def app(
    settings: Settings,
    relational_store: FakeRelationalStore,
    cache_store: FlakyCacheStore,
    user_repository: FakeUserRepository,
):
    return create_app(
        settings,
        relational_store=relational_store,
        cache_store=cache_store,
        user_repository=user_repository,
        configure_logs=False,
    )


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
