"""HTTP middleware for request correlation, access logging and request hygiene.

``request_context_middleware``:
- Accepts incoming X-Request-ID header or generates a UUID
- Binds request_id in contextvars for the whole request lifecycle
- Turns unexpected exceptions into the generic 500 envelope while the request
  id is still bound, so the body and headers carry it
- Injects request_id and total duration into response headers
- Records the duration into the app's ``RequestStats`` (feeds /api/metrics)
- Emits one structured ``http.request`` access-log line per request

``body_size_limit_middleware`` rejects bodies whose declared Content-Length
exceeds ``APP_MAX_BODY_BYTES`` before they are read.

``security_headers_middleware`` adds a conservative set of browser hardening
headers to every response.

Usage:
    app.middleware("http")(request_context_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response

from backend.core.errors import PayloadTooLargeAppError
from backend.core.exception_handlers import app_error_handler, general_exception_handler
from backend.core.logging import bind_request_id, reset_request_id

logger = logging.getLogger("backend.access")

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Resource-Policy": "same-origin",
    "X-DNS-Prefetch-Control": "off",
}

_METHODS_WITH_BODY = {"POST", "PUT", "PATCH"}


def _client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def request_context_middleware(request: Request, call_next) -> Response:
    """Propagate a request id, time the request and log it.

    The header name comes from ``LOG_REQUEST_ID_HEADER``.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The response from the next handler with request_id and
            duration headers added.
    """
    header_name = request.app.state.settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    token = bind_request_id(request_id)
    start = time.perf_counter()
    try:
        try:
            response: Response = await call_next(request)
        except Exception as exc:
            response = await general_exception_handler(request, exc)

        duration_ms = (time.perf_counter() - start) * 1000
        request.app.state.request_stats.record(duration_ms)
        logger.info(
            "http.request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
                "client": _client_address(request),
            },
        )
    finally:
        reset_request_id(token)

    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response


async def body_size_limit_middleware(request: Request, call_next) -> Response:
    """Answer 413 when the declared body is larger than the configured cap."""
    if request.method in _METHODS_WITH_BODY:
        max_bytes = request.app.state.settings.app.max_body_bytes
        declared = request.headers.get("content-length")
        if declared is not None and declared.isdigit() and int(declared) > max_bytes:
            return await app_error_handler(
                request,
                PayloadTooLargeAppError(
                    code="payload_too_large",
                    message="Request body is too large",
                    details={"limit": max_bytes},
                ),
            )
    return await call_next(request)


async def security_headers_middleware(request: Request, call_next) -> Response:
    response: Response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    return response
