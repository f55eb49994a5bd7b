from __future__ import annotations

from fastapi import APIRouter

from backend.api.routes.health import router as health_router
from backend.api.routes.system import router as system_router
from backend.api.routes.users import router as users_router

# Admission control for /api is applied by rate_limit_middleware, before routing
api_router = APIRouter(prefix="/api")
api_router.include_router(system_router)
api_router.include_router(users_router)

__all__ = ["api_router", "health_router"]
