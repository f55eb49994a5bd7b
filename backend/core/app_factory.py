"""Application factory for the FastAPI app.

Centralizes app construction (settings, stores, services, middleware,
handlers, routers) so tests can build an app around fake stores. Every
component receives its configuration explicitly; shared state lives on
``app.state``.

Lifecycle:
- startup opens the relational pool (without waiting for the server), checks
  the cache connection and optionally bootstraps the schema;
- shutdown runs after uvicorn has stopped accepting connections and drained
  in-flight requests, then closes the pool and the cache connection.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from backend.adapters.cache import AbstractCacheStore, create_cache_store
from backend.adapters.rate_limit import AbstractRateLimiter, InMemoryFixedWindowRateLimiter
from backend.adapters.relational import AbstractRelationalStore, PostgresStore
from backend.api.routes import api_router, health_router
from backend.core.config import Settings, load_settings
from backend.core.errors import ConnectionAppError, QueryAppError
from backend.core.exception_handlers import setup_exception_handlers
from backend.core.logging import configure_logging
from backend.core.middleware import (
    body_size_limit_middleware,
    request_context_middleware,
    security_headers_middleware,
)
from backend.core.openapi import apply_openapi_customizations
from backend.core.rate_limit import rate_limit_middleware
from backend.repositories.users import AbstractUserRepository, PostgresUserRepository
from backend.services.status_service import StatusAggregator
from backend.services.user_service import UserService
from backend.utils.request_stats import RequestStats

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open store connections on startup and release them on shutdown."""
    settings: Settings = app.state.settings
    relational_store: AbstractRelationalStore = app.state.relational_store
    cache_store: AbstractCacheStore = app.state.cache_store

    await relational_store.open()
    await cache_store.connect()

    if settings.db.auto_migrate and isinstance(relational_store, PostgresStore):
        try:
            await relational_store.ensure_schema()
        except (ConnectionAppError, QueryAppError) as exc:
            logger.error("db.schema_failed", extra={"error_code": exc.code, "error_msg": exc.message})

    logger.info(
        "app.started",
        extra={"environment": settings.app.environment, "port": settings.app.port},
    )
    try:
        yield
    finally:
        logger.info("app.stopping", extra={"db_pool": relational_store.stats()})
        await relational_store.close()
        await cache_store.close()
        logger.info("app.stopped")


def create_app(
    settings: Settings | None = None,
    *,
    relational_store: AbstractRelationalStore | None = None,
    cache_store: AbstractCacheStore | None = None,
    user_repository: AbstractUserRepository | None = None,
    rate_limiter: AbstractRateLimiter | None = None,
    configure_logs: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        settings: Application settings; loaded from the environment if omitted.
        relational_store: Override for the PostgreSQL store.
        cache_store: Override for the configured cache store.
        user_repository: Override for the SQL user repository.
        rate_limiter: Override for the in-memory fixed-window limiter.
        configure_logs: Whether to install the root log handler.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    settings = settings or load_settings()

    # Logging first so subsequent init logs are formatted as desired
    if configure_logs:
        configure_logging(settings.log)

    relational_store = relational_store or PostgresStore.from_settings(settings.db)
    cache_store = cache_store or create_cache_store(settings.redis)
    user_repository = user_repository or PostgresUserRepository(relational_store)
    rate_limiter = rate_limiter or InMemoryFixedWindowRateLimiter(
        limit=settings.app.rate_limit_requests,
        window_seconds=settings.app.rate_limit_window_seconds,
    )
    request_stats = RequestStats()

    aggregator = StatusAggregator(
        relational_store=relational_store,
        cache_store=cache_store,
        user_repository=user_repository,
        request_stats=request_stats,
        status_ttl_seconds=settings.app.status_cache_ttl_seconds,
        metrics_ttl_seconds=settings.app.metrics_cache_ttl_seconds,
        slow_probe_ms=settings.app.status_slow_probe_ms,
    )
    user_service = UserService(
        repository=user_repository,
        aggregator=aggregator,
        list_limit=settings.app.users_list_limit,
    )

    app = FastAPI(
        title="DockerMastery Backend",
        description=(
            "Monitoring and user API for the DockerMastery dashboard: uncached "
            "health checks, cached service status and metrics, and a small "
            "users resource. All /api/* routes are rate limited per client."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.relational_store = relational_store
    app.state.cache_store = cache_store
    app.state.rate_limiter = rate_limiter
    app.state.request_stats = request_stats
    app.state.status_aggregator = aggregator
    app.state.user_service = user_service

    # Middleware (last added runs first): request context, security headers,
    # CORS, gzip, rate limit, body size, then routing
    app.middleware("http")(body_size_limit_middleware)
    app.middleware("http")(rate_limit_middleware)
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.app.frontend_url],
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[settings.log.request_id_header],
    )
    app.middleware("http")(security_headers_middleware)
    app.middleware("http")(request_context_middleware)

    setup_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(api_router)

    apply_openapi_customizations(app)

    return app
