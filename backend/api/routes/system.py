from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from backend.api.dependencies import get_status_aggregator
from backend.schemas.status import MetricsSnapshot, StatusSnapshot
from backend.services.status_service import StatusAggregator

router = APIRouter(tags=["System"])


def _json(model: StatusSnapshot | MetricsSnapshot) -> Response:
    return Response(content=model.model_dump_json(by_alias=True), media_type="application/json")


@router.get("/status", response_model=StatusSnapshot)
async def get_status(
    aggregator: Annotated[StatusAggregator, Depends(get_status_aggregator)],
) -> Response:
    """Service status table (Backend API, Database, Redis Cache).

    Served from the cache store for up to 60 seconds after it was computed.
    """
    return _json(await aggregator.get_status())


@router.get("/metrics", response_model=MetricsSnapshot)
async def get_metrics(
    aggregator: Annotated[StatusAggregator, Depends(get_status_aggregator)],
) -> Response:
    """Headline counters: users, requests served, mean latency, uptime.

    Served from the cache store for up to 30 seconds; creating a user drops
    the cached copy.
    """
    return _json(await aggregator.get_metrics())
