"""Request-scoped accessors for services built by the app factory."""

from __future__ import annotations

from fastapi import Request

from backend.services.status_service import StatusAggregator
from backend.services.user_service import UserService


def get_status_aggregator(request: Request) -> StatusAggregator:
    return request.app.state.status_aggregator


def get_user_service(request: Request) -> UserService:
    return request.app.state.user_service
