from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, status

from backend.api.dependencies import get_user_service
from backend.schemas.users import User, UserCreateRequest
from backend.services.user_service import UserService

router = APIRouter(tags=["Users"])


@router.get("/users", response_model=list[User])
async def list_users(
    service: Annotated[UserService, Depends(get_user_service)],
) -> list[User]:
    """Most recently created users, newest first (at most 10)."""
    return await service.list_users()


@router.post(
    "/users",
    response_model=User,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Name or email missing"},
        409: {"description": "Email already registered"},
    },
)
async def create_user(
    payload: UserCreateRequest,
    service: Annotated[UserService, Depends(get_user_service)],
) -> User:
    """Create a user.

    Raises:
        ValidationAppError: 400 when name or email is missing.
        ConflictAppError: 409 when the email is already registered.
    """
    return await service.create_user(payload.name, payload.email)
