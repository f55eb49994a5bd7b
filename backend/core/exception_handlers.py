"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain, framework and unexpected) and return consistent JSON responses with
proper HTTP status codes and traceability.

Design:
- AppError subclasses → status from ``APP_ERROR_STATUS`` (400, 409, 413, 429, 500)
- Store errors (5xx) → generic message; internal detail stays in the logs
- Request body validation → 400
- Starlette HTTP errors (404, 405) → same envelope
- Unexpected Exception → generic 500 (safety net)
- All responses include request_id for distributed tracing
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend.core.errors import (
    AppError,
    ConflictAppError,
    ConnectionAppError,
    PayloadTooLargeAppError,
    QueryAppError,
    RateLimitAppError,
    StoreUnavailableAppError,
    ValidationAppError,
)
from backend.core.logging import get_request_id

logger = logging.getLogger(__name__)

APP_ERROR_STATUS: dict[type[AppError], int] = {
    ValidationAppError: 400,
    ConflictAppError: 409,
    PayloadTooLargeAppError: 413,
    RateLimitAppError: 429,
    ConnectionAppError: 500,
    QueryAppError: 500,
    StoreUnavailableAppError: 500,
}

GENERIC_ERROR_MESSAGE = "Internal server error"

_HTTP_ERROR_CODES = {
    404: ("route_not_found", "Route not found"),
    405: ("method_not_allowed", "Method not allowed"),
}


def _status_for(exc: AppError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in APP_ERROR_STATUS:
            return APP_ERROR_STATUS[error_type]
    return 500


def _error_body(code: str, message: str, details: dict | None = None) -> dict:
    error_content = {
        "code": code,
        "message": message,
        "request_id": get_request_id(),
    }
    if details:
        error_content["details"] = details
    return {"error": error_content}


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    Client faults (4xx) echo the error code, message and details. Server
    faults (5xx) are logged in full but answered with a generic message so
    store internals never reach the client.

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error details.
    """
    status_code = _status_for(exc)

    log_extra = {
        "error_code": exc.code,
        "error_message": exc.message,
        "status_code": status_code,
        "has_details": bool(exc.details),
        "request_path": request.url.path,
        "request_id": get_request_id(),
    }

    if status_code >= 500:
        logger.error("app_error_handled", extra=log_extra)
        content = _error_body("internal_server_error", GENERIC_ERROR_MESSAGE)
    else:
        logger.warning("app_error_handled", extra=log_extra)
        content = _error_body(exc.code, exc.message, dict(exc.details) if exc.details else None)

    headers = exc.headers if isinstance(exc, RateLimitAppError) and exc.headers else None
    return JSONResponse(status_code=status_code, content=content, headers=headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Map malformed request bodies to 400 instead of FastAPI's default 422."""
    logger.warning(
        "request_validation_failed",
        extra={"request_path": request.url.path, "error_count": len(exc.errors())},
    )
    return JSONResponse(
        status_code=400,
        content=_error_body("invalid_request", "Request body is malformed"),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Wrap framework HTTP errors (unknown route, wrong method) in the envelope."""
    code, message = _HTTP_ERROR_CODES.get(exc.status_code, ("http_error", str(exc.detail)))
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(code, message),
        headers=getattr(exc, "headers", None),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs detailed information for debugging while returning a generic message.
    Prevents information leakage (no stack traces to client).
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        },
        exc_info=exc,
    )

    return JSONResponse(
        status_code=500,
        content=_error_body("internal_server_error", GENERIC_ERROR_MESSAGE),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(RequestValidationError)(request_validation_handler)
    app.exception_handler(StarletteHTTPException)(http_exception_handler)
    app.exception_handler(Exception)(general_exception_handler)
