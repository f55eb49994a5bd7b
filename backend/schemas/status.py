"""Pydantic schemas for health, status and metrics payloads.

Field names on the wire follow the dashboard contract (``uptime``,
``timestamp``, ``activeUsers`` ...); Python attributes use snake_case and
map onto them through serialization aliases.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ServiceState(str, Enum):
    """Display status of a single service in a StatusSnapshot."""

    HEALTHY = "healthy"
    WARNING = "warning"
    ERROR = "error"


class HealthReport(BaseModel):
    """Result of one liveness probe against a dependency. Never cached."""

    service_name: str
    reachable: bool
    checked_at: datetime
    latency_ms: float | None = None
    detail: str | None = None
    uptime_seconds: int | None = None


class ServiceStatus(BaseModel):
    """One row of the status table."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    status: ServiceState
    uptime_label: str = Field(..., serialization_alias="uptime", validation_alias="uptime")


class StatusSnapshot(BaseModel):
    """Ordered service statuses as shown on the dashboard."""

    model_config = ConfigDict(populate_by_name=True)

    services: list[ServiceStatus]
    generated_at: datetime = Field(
        ..., serialization_alias="timestamp", validation_alias="timestamp"
    )


class MetricsSnapshot(BaseModel):
    """Headline counters for the dashboard."""

    model_config = ConfigDict(populate_by_name=True)

    active_users: int = Field(
        ..., ge=0, serialization_alias="activeUsers", validation_alias="activeUsers"
    )
    total_requests: int = Field(
        ..., ge=0, serialization_alias="totalRequests", validation_alias="totalRequests"
    )
    average_response_time_ms: int = Field(
        ...,
        ge=0,
        serialization_alias="averageResponseTime",
        validation_alias="averageResponseTime",
    )
    uptime_label: str = Field(..., serialization_alias="uptime", validation_alias="uptime")
    generated_at: datetime = Field(
        ..., serialization_alias="timestamp", validation_alias="timestamp"
    )


class HealthResult(BaseModel):
    """Aggregated uncached health check returned by ``GET /health``."""

    status: str = Field(..., description="'healthy' or 'unhealthy'")
    timestamp: datetime
    services: dict[str, str] = Field(
        ...,
        description="Per-dependency state: database/redis 'connected' or 'disconnected', api 'running'.",
    )

    @property
    def healthy(self) -> bool:
        return self.status == "healthy"
