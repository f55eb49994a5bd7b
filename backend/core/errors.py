"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep backward compatibility while encouraging
    consistent shapes across the codebase.
    """

    code: str
    message: str
    hint: str
    field: str
    sqlstate: str
    store: str
    limit: int
    retry_after: int
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when client input fails validation."""


class ConflictAppError(AppError):
    """Raised when a write would violate a uniqueness constraint."""


class PayloadTooLargeAppError(AppError):
    """Raised when a request body exceeds the configured size cap."""


@dataclass
class RateLimitAppError(AppError):
    """Raised when a client exceeds its request budget.

    Attributes:
        headers: Response headers describing the limit (may be empty).
    """

    headers: dict[str, str] = field(default_factory=dict)


class ConnectionAppError(AppError):
    """Raised when the relational store is unreachable or the pool is exhausted."""


class QueryAppError(AppError):
    """Raised when a relational query is malformed or fails server-side."""


class StoreUnavailableAppError(AppError):
    """Raised when the cache store cannot be reached.

    Callers treat this as a soft failure and fall back to the source of truth.
    """
