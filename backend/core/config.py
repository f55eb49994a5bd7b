"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file

Settings are built once by ``load_settings()`` at process start and handed to
``create_app()``; components receive the group they need in their
constructor instead of importing a module-level instance.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}


class DatabaseSettings(BaseSettings):
    """PostgreSQL connection and pool configuration."""

    host: str = Field("localhost", description="Database host")
    port: int = Field(5432, description="Database port")
    name: str = Field("dockermastery", description="Database name")
    user: str = Field("postgres", description="Database user")
    password: str = Field("password", description="Database password")

    pool_min_size: int = Field(
        1,
        ge=0,
        description="Connections kept open even when idle",
    )
    pool_max_size: int = Field(
        20,
        ge=1,
        description="Maximum concurrent connections held by the pool",
    )
    pool_timeout_seconds: float = Field(
        5.0,
        gt=0,
        description="Maximum wait for a free connection before failing",
    )
    idle_timeout_seconds: float = Field(
        30.0,
        gt=0,
        description="Idle connections above min size are closed after this",
    )
    connect_timeout_seconds: int = Field(
        2,
        ge=1,
        description="Timeout for establishing a new server connection",
    )
    auto_migrate: bool = Field(
        False,
        description="Create the users table on startup if it does not exist",
    )

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        case_sensitive=False,
    )

    def connection_kwargs(self) -> dict[str, str | int]:
        """libpq connection parameters."""
        return {
            "host": self.host,
            "port": self.port,
            "dbname": self.name,
            "user": self.user,
            "password": self.password,
            "connect_timeout": self.connect_timeout_seconds,
        }

    def connection_label(self) -> str:
        """Connection target safe for logs (no credentials)."""
        return f"{self.host}:{self.port}/{self.name}"


class RedisSettings(BaseSettings):
    """Cache store configuration."""

    backend: str = Field(
        "redis",
        description="Cache backend: 'redis' or 'memory' (single process, local runs)",
    )
    host: str = Field("localhost", description="Redis host")
    port: int = Field(6379, description="Redis port")
    password: str | None = Field(None, description="Redis password")
    db: int = Field(0, ge=0, description="Redis logical database")
    socket_timeout_seconds: float = Field(
        2.0,
        gt=0,
        description="Connect and read timeout for Redis commands",
    )

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        case_sensitive=False,
    )

    @property
    def url(self) -> str:
        return f"redis://{self.host}:{self.port}/{self.db}"


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    host: str = Field("0.0.0.0", description="Bind address for the HTTP server")
    port: int = Field(5000, description="Bind port for the HTTP server")
    environment: str = Field("development", description="Deployment environment name")
    frontend_url: str = Field(
        "http://localhost:3000",
        description="Origin allowed by CORS (the dashboard)",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable rate limiting on /api/* routes",
    )
    rate_limit_requests: int = Field(
        100,
        description="Maximum number of requests allowed per window (per client)",
        ge=1,
    )
    rate_limit_window_seconds: int = Field(
        900,
        description="Rate limit window size in seconds",
        ge=1,
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )
    trust_forwarded_for: bool = Field(
        False,
        description="Use the first X-Forwarded-For hop as client identity",
    )

    status_cache_ttl_seconds: int = Field(60, ge=1)
    metrics_cache_ttl_seconds: int = Field(30, ge=1)
    status_slow_probe_ms: float = Field(
        1000.0,
        gt=0,
        description="Probe latency above which a service is reported as 'warning'",
    )
    users_list_limit: int = Field(10, ge=1, le=100)
    max_body_bytes: int = Field(
        10 * 1024 * 1024,
        ge=1,
        description="Largest accepted request body, by declared Content-Length",
    )
    shutdown_grace_seconds: int = Field(
        10,
        ge=0,
        description="How long in-flight requests may drain on shutdown",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="'json' or 'plain'")
    output: str = Field("stdout", description="'stdout' or 'file'")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(10_485_760, ge=0, description="Rotate after this size (0 disables)")
    backup_count: int = Field(5, ge=0)
    request_id_header: str = Field("X-Request-ID")

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Composed from the domain-specific groups above. Raises validation errors
    on startup if a value cannot be parsed.
    """

    app_env: str = "development"
    db: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    app: AppSettings = Field(default_factory=AppSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


def _resolve_env_file(app_env: str) -> Path | None:
    env_filename = ENV_FILE_MAP.get(app_env, ".env.development")
    env_path = PROJECT_ROOT / env_filename
    return env_path if env_path.is_file() else None


def load_settings() -> Settings:
    """Build settings from the environment.

    The matching ``.env.{APP_ENV}`` file is loaded into ``os.environ`` first,
    because nested BaseSettings groups don't inherit ``env_file``. Values
    already present in the environment win over the file.

    Returns:
        Settings: Fully validated configuration.
    """
    app_env = os.getenv("APP_ENV", "development")
    env_file = _resolve_env_file(app_env)
    if env_file is not None:
        load_dotenv(env_file, override=False)

    return Settings(app_env=app_env)
