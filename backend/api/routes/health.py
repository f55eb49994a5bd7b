from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from backend.api.dependencies import get_status_aggregator
from backend.schemas.status import HealthResult
from backend.services.status_service import StatusAggregator

router = APIRouter(tags=["Health"])


@router.get(
    "/health",
    response_model=HealthResult,
    responses={503: {"model": HealthResult, "description": "A dependency is down"}},
)
async def health_check(
    aggregator: Annotated[StatusAggregator, Depends(get_status_aggregator)],
) -> JSONResponse:
    """Uncached liveness check of the database and the cache store.

    Used by load balancers and container health checks. Not rate limited.

    Returns:
        JSONResponse: 200 when every dependency answered, 503 otherwise.
    """

    result = await aggregator.get_health()
    status_code = status.HTTP_200_OK if result.healthy else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(content=result.model_dump(mode="json"), status_code=status_code)
