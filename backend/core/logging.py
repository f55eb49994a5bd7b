"""Structured logging: JSON lines, request correlation and redaction.

Every record emitted while a request is being served carries that request's
id (held in a context variable). Fields named like credentials or user
e-mail addresses are replaced by ``[REDACTED]`` at any nesting depth before
a record is formatted.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from logging import LogRecord
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from backend.core.config import LogSettings

REDACTED = "[REDACTED]"

SENSITIVE_KEYS_DEFAULT: frozenset[str] = frozenset(
    {
        "authorization",
        "cookie",
        "set-cookie",
        "password",
        "db_password",
        "redis_password",
        "secret",
        "token",
        "conninfo",
        "email",
    }
)

# Attributes every LogRecord has; anything else arrived through ``extra=``
_STANDARD_ATTRS = frozenset(vars(LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "taskName",
}

# Third-party loggers that are chatty at INFO
_NOISY_LOGGERS = ("psycopg.pool", "uvicorn.access")

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)


def bind_request_id(request_id: str | None) -> Token:
    """Set the request id for the current context; pass the token to ``reset_request_id``."""
    return _request_id_var.set(request_id)


def reset_request_id(token: Token) -> None:
    _request_id_var.reset(token)


def get_request_id() -> str | None:
    return _request_id_var.get()


def redact(value: Any, sensitive_keys: frozenset[str]) -> Any:
    """Return ``value`` with every sensitive mapping key masked, recursively."""
    if isinstance(value, Mapping):
        return {
            k: REDACTED if str(k).lower() in sensitive_keys else redact(v, sensitive_keys)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(redact(v, sensitive_keys) for v in value)
    return value


def _normalize_keys(keys: Iterable[str] | None) -> frozenset[str]:
    return frozenset(k.lower() for k in (keys or SENSITIVE_KEYS_DEFAULT))


def _extras(record: LogRecord) -> dict[str, Any]:
    return {
        k: v
        for k, v in record.__dict__.items()
        if k not in _STANDARD_ATTRS and not k.startswith("_")
    }


class RequestIdFilter(logging.Filter):
    """Attach the context request id to records that don't carry one."""

    def filter(self, record: LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            request_id = get_request_id()
            if request_id:
                record.request_id = request_id
        return True


class SensitiveDataFilter(logging.Filter):
    """Mask sensitive ``extra`` fields on the record itself.

    Runs on the handler, so plain-text formatters never see raw values either.
    """

    def __init__(self, sensitive_keys: Iterable[str] | None = None) -> None:
        super().__init__()
        self.sensitive_keys = _normalize_keys(sensitive_keys)

    def filter(self, record: LogRecord) -> bool:
        for key, value in redact(_extras(record), self.sensitive_keys).items():
            setattr(record, key, value)
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, logger, message, extras."""

    def __init__(self, *, sensitive_keys: Iterable[str] | None = None) -> None:
        super().__init__()
        self.sensitive_keys = _normalize_keys(sensitive_keys)

    def format(self, record: LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id:
            payload["request_id"] = request_id
        payload.update(redact(_extras(record), self.sensitive_keys))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    if log_settings.output.lower() != "file":
        return logging.StreamHandler(sys.stdout)

    file_path = Path(log_settings.file_path or "logs/app.log")
    file_path.parent.mkdir(parents=True, exist_ok=True)
    if log_settings.max_bytes:
        return RotatingFileHandler(
            file_path,
            maxBytes=log_settings.max_bytes,
            backupCount=log_settings.backup_count,
            encoding="utf-8",
        )
    return logging.FileHandler(file_path, encoding="utf-8")


def configure_logging(log_settings: LogSettings) -> None:
    """Install a single root handler according to the LOG_* settings.

    Args:
        log_settings: Logging section of the application settings.
    """
    level = getattr(logging, log_settings.level.upper(), logging.INFO)

    handler = _build_handler(log_settings)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    if log_settings.format.lower() == "plain":
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    else:
        handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # The access log middleware already emits one line per request
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
