"""Rate limiting middleware for the /api surface.

This module wires the rate limiting adapter into the HTTP layer. The limiter
instance lives on ``app.state`` (built once by the app factory), so every
request of one process shares the same windows and tests get a fresh limiter
per app.

Rate limiting strategy:
- Fixed window per client address, applied to every request under /api,
  before routing. Unknown routes, wrong methods and malformed bodies under
  /api are counted like any other request.
- Behind a trusted proxy, the first X-Forwarded-For hop is the client.
"""

from __future__ import annotations

import hashlib
import logging

from fastapi import Request, Response

from backend.adapters.rate_limit import AbstractRateLimiter, RateLimitResult
from backend.core.config import AppSettings
from backend.core.errors import RateLimitAppError
from backend.core.exception_handlers import app_error_handler

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."
RATE_LIMITED_PREFIX = "/api"


def build_client_identity(request: Request, *, trust_forwarded_for: bool) -> str:
    """Build the limiter key for the current request.

    Args:
        request: FastAPI request.
        trust_forwarded_for: Whether X-Forwarded-For is set by a trusted proxy.

    Returns:
        str: Namespaced limiter key.
    """
    if trust_forwarded_for:
        forwarded = request.headers.get("X-Forwarded-For", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return f"ip:{first_hop}"

    client_host = request.client.host if request.client else "unknown"
    return f"ip:{client_host}"


def _hash_limiter_key(key: str) -> str:
    """Hash the rate limit key so client addresses don't end up in logs."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def _limit_headers(result: RateLimitResult) -> dict[str, str]:
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_at),
    }
    if result.retry_after_seconds is not None:
        headers["Retry-After"] = str(result.retry_after_seconds)
    return headers


async def enforce_rate_limit(request: Request) -> None:
    """Charge one request against the caller's window.

    Consumes one unit from the requester's budget. Once the window's budget is
    spent, raises ``RateLimitAppError`` (HTTP 429) until the window ends.

    Raises:
        RateLimitAppError: When the rate limit is exceeded.
    """
    app_settings: AppSettings = request.app.state.settings.app
    if not app_settings.rate_limit_enabled:
        return

    limiter: AbstractRateLimiter = request.app.state.rate_limiter
    key = build_client_identity(request, trust_forwarded_for=app_settings.trust_forwarded_for)

    result = limiter.consume(key)
    if result.allowed:
        return

    logger.warning(
        "rate_limit.exceeded",
        extra={
            "key_hash": _hash_limiter_key(key),
            "limit": result.limit,
            "window_s": app_settings.rate_limit_window_seconds,
            "retry_after_s": result.retry_after_seconds,
        },
    )

    raise RateLimitAppError(
        code="rate_limited",
        message=RATE_LIMIT_MESSAGE,
        details={"limit": result.limit, "retry_after": result.retry_after_seconds or 0},
        headers=_limit_headers(result) if app_settings.rate_limit_include_headers else {},
    )


def is_rate_limited_path(path: str) -> bool:
    return path == RATE_LIMITED_PREFIX or path.startswith(RATE_LIMITED_PREFIX + "/")


async def rate_limit_middleware(request: Request, call_next) -> Response:
    """Admission control for every request under /api, matched route or not.

    Runs inside the request-context middleware so rejections carry the
    request id and are counted in the access log.
    """
    if is_rate_limited_path(request.url.path):
        try:
            await enforce_rate_limit(request)
        except RateLimitAppError as exc:
            return await app_error_handler(request, exc)
    return await call_next(request)
