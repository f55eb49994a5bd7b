"""Status, metrics and health aggregation over the relational and cache stores.

``get_status`` and ``get_metrics`` are read-through cached in the cache store
under fixed keys with short TTLs; expiry is left to the store, so a cached
snapshot is never served past its TTL and the first request after expiry
recomputes synchronously. Two concurrent misses may both recompute and both
write; the second write simply overwrites the first.

``get_health`` is never cached: it probes every dependency on each call.

Cache failures are always absorbed here (logged, then recompute from source).
A failing dependency probe degrades only that service's row in the status
snapshot.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Callable

from pydantic import ValidationError

from backend.adapters.cache import AbstractCacheStore
from backend.adapters.relational import AbstractRelationalStore
from backend.core.errors import ConnectionAppError, QueryAppError, StoreUnavailableAppError
from backend.repositories.users import AbstractUserRepository
from backend.schemas.status import (
    HealthReport,
    HealthResult,
    MetricsSnapshot,
    ServiceState,
    ServiceStatus,
    StatusSnapshot,
)
from backend.utils.request_stats import RequestStats
from backend.utils.uptime import format_uptime

logger = logging.getLogger(__name__)

STATUS_CACHE_KEY = "system:status"
METRICS_CACHE_KEY = "system:metrics"

# Display order of the status table; never re-sorted by runtime state
BACKEND_SERVICE = "Backend API"
DATABASE_SERVICE = "Database"
CACHE_SERVICE = "Redis Cache"

_DATABASE_PROBE_SQL = (
    "SELECT CAST(EXTRACT(EPOCH FROM (now() - pg_postmaster_start_time())) AS BIGINT)"
    " AS uptime_seconds"
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StatusAggregator:
    """Composes health, status and metrics views from both stores."""

    def __init__(
        self,
        *,
        relational_store: AbstractRelationalStore,
        cache_store: AbstractCacheStore,
        user_repository: AbstractUserRepository,
        request_stats: RequestStats,
        status_ttl_seconds: int = 60,
        metrics_ttl_seconds: int = 30,
        slow_probe_ms: float = 1000.0,
        now: Callable[[], datetime] = _utcnow,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._db = relational_store
        self._cache = cache_store
        self._users = user_repository
        self._request_stats = request_stats
        self._status_ttl = status_ttl_seconds
        self._metrics_ttl = metrics_ttl_seconds
        self._slow_probe_ms = slow_probe_ms
        self._now = now
        self._monotonic = monotonic
        self._started_at = monotonic()

    def process_uptime_seconds(self) -> float:
        return self._monotonic() - self._started_at

    # -- probes -----------------------------------------------------------

    async def probe_database(self) -> HealthReport:
        """Lightweight liveness query; also reads the server's uptime."""
        start = time.perf_counter()
        try:
            rows = await self._db.query(_DATABASE_PROBE_SQL)
        except (ConnectionAppError, QueryAppError) as exc:
            logger.warning(
                "status.probe_failed",
                extra={"service": "database", "error_code": exc.code, "error_msg": exc.message},
            )
            return HealthReport(
                service_name="database",
                reachable=False,
                checked_at=self._now(),
                detail=exc.code,
            )

        uptime = rows[0].get("uptime_seconds") if rows else None
        return HealthReport(
            service_name="database",
            reachable=True,
            checked_at=self._now(),
            latency_ms=(time.perf_counter() - start) * 1000,
            uptime_seconds=int(uptime) if uptime is not None else None,
        )

    async def probe_cache(self) -> HealthReport:
        """Liveness is ``ping`` alone; uptime is best effort."""
        start = time.perf_counter()
        try:
            await self._cache.ping()
        except StoreUnavailableAppError as exc:
            logger.warning(
                "status.probe_failed",
                extra={"service": "cache", "error_code": exc.code, "error_msg": exc.message},
            )
            return HealthReport(
                service_name="cache",
                reachable=False,
                checked_at=self._now(),
                detail=exc.code,
            )
        latency_ms = (time.perf_counter() - start) * 1000

        try:
            uptime = await self._cache.uptime_seconds()
        except StoreUnavailableAppError as exc:
            # e.g. INFO denied by an ACL on a managed server
            logger.info(
                "status.cache_uptime_unavailable",
                extra={"error_code": exc.code, "error_msg": exc.message},
            )
            uptime = None

        return HealthReport(
            service_name="cache",
            reachable=True,
            checked_at=self._now(),
            latency_ms=latency_ms,
            uptime_seconds=uptime,
        )

    def _service_status(self, name: str, report: HealthReport) -> ServiceStatus:
        if not report.reachable:
            return ServiceStatus(
                name=name, status=ServiceState.ERROR, uptime_label=format_uptime(None)
            )

        state = ServiceState.HEALTHY
        if report.latency_ms is not None and report.latency_ms > self._slow_probe_ms:
            state = ServiceState.WARNING
        return ServiceStatus(
            name=name,
            status=state,
            uptime_label=format_uptime(report.uptime_seconds),
        )

    # -- cache helpers ----------------------------------------------------

    async def _cache_read(self, key: str) -> str | None:
        try:
            value = await self._cache.get(key)
        except StoreUnavailableAppError as exc:
            logger.warning("cache.read_failed", extra={"cache_key": key, "error_msg": exc.message})
            return None
        logger.debug("cache.hit" if value is not None else "cache.miss", extra={"cache_key": key})
        return value

    async def _cache_write(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._cache.set_with_ttl(key, value, ttl_seconds)
        except StoreUnavailableAppError as exc:
            logger.warning("cache.write_failed", extra={"cache_key": key, "error_msg": exc.message})

    # -- public operations ------------------------------------------------

    async def get_status(self) -> StatusSnapshot:
        """Return the service status table, served from cache when fresh."""
        cached = await self._cache_read(STATUS_CACHE_KEY)
        if cached is not None:
            try:
                return StatusSnapshot.model_validate_json(cached)
            except ValidationError:
                logger.warning("cache.corrupt_entry", extra={"cache_key": STATUS_CACHE_KEY})

        database, cache = await asyncio.gather(self.probe_database(), self.probe_cache())
        snapshot = StatusSnapshot(
            services=[
                ServiceStatus(
                    name=BACKEND_SERVICE,
                    status=ServiceState.HEALTHY,
                    uptime_label=format_uptime(self.process_uptime_seconds()),
                ),
                self._service_status(DATABASE_SERVICE, database),
                self._service_status(CACHE_SERVICE, cache),
            ],
            generated_at=self._now(),
        )

        await self._cache_write(
            STATUS_CACHE_KEY, snapshot.model_dump_json(by_alias=True), self._status_ttl
        )
        return snapshot

    async def get_metrics(self) -> MetricsSnapshot:
        """Return current counters, served from cache when fresh.

        Raises:
            ConnectionAppError: If the user count cannot reach the database.
            QueryAppError: If the user count query fails.
        """
        cached = await self._cache_read(METRICS_CACHE_KEY)
        if cached is not None:
            try:
                return MetricsSnapshot.model_validate_json(cached)
            except ValidationError:
                logger.warning("cache.corrupt_entry", extra={"cache_key": METRICS_CACHE_KEY})

        active_users = await self._users.count()
        requests = self._request_stats.snapshot()
        snapshot = MetricsSnapshot(
            active_users=active_users,
            total_requests=requests.total_requests,
            average_response_time_ms=requests.average_response_time_ms,
            uptime_label=format_uptime(self.process_uptime_seconds()),
            generated_at=self._now(),
        )

        await self._cache_write(
            METRICS_CACHE_KEY, snapshot.model_dump_json(by_alias=True), self._metrics_ttl
        )
        return snapshot

    async def get_health(self) -> HealthResult:
        """Probe every dependency right now; never cached."""
        database, cache = await asyncio.gather(self.probe_database(), self.probe_cache())
        healthy = database.reachable and cache.reachable

        if not healthy:
            logger.error(
                "health.check_failed",
                extra={
                    "database": database.detail or "ok",
                    "cache": cache.detail or "ok",
                },
            )

        return HealthResult(
            status="healthy" if healthy else "unhealthy",
            timestamp=self._now(),
            services={
                "database": "connected" if database.reachable else "disconnected",
                "redis": "connected" if cache.reachable else "disconnected",
                "api": "running",
            },
        )

    async def invalidate_metrics(self) -> None:
        """Drop the cached metrics so the next read recomputes."""
        try:
            await self._cache.delete(METRICS_CACHE_KEY)
        except StoreUnavailableAppError as exc:
            # The entry, if any, still expires on its own within the TTL
            logger.warning(
                "cache.invalidate_failed",
                extra={"cache_key": METRICS_CACHE_KEY, "error_msg": exc.message},
            )
