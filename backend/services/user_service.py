"""User CRUD service.

Creating a user changes the displayed user count, so every successful insert
invalidates the cached metrics snapshot.
"""

from __future__ import annotations

import logging

from backend.core.errors import ValidationAppError
from backend.repositories.users import AbstractUserRepository
from backend.schemas.users import User
from backend.services.status_service import StatusAggregator

logger = logging.getLogger(__name__)


def _normalize(value: str | None) -> str:
    return value.strip() if isinstance(value, str) else ""


class UserService:
    """List and create users."""

    def __init__(
        self,
        *,
        repository: AbstractUserRepository,
        aggregator: StatusAggregator,
        list_limit: int = 10,
    ) -> None:
        self._repository = repository
        self._aggregator = aggregator
        self._list_limit = list_limit

    async def list_users(self, limit: int | None = None) -> list[User]:
        """Return the most recent users, newest first.

        Args:
            limit: Maximum rows; defaults to the configured list limit and is
                never allowed to exceed it.
        """
        effective = self._list_limit if limit is None else max(1, min(limit, self._list_limit))
        return await self._repository.list_recent(effective)

    async def create_user(self, name: str | None, email: str | None) -> User:
        """Create a user and invalidate cached metrics.

        Args:
            name: Display name; surrounding whitespace is stripped.
            email: E-mail address; surrounding whitespace is stripped.

        Returns:
            User: The stored row, including its store-assigned id.

        Raises:
            ValidationAppError: If name or email is missing or blank.
            ConflictAppError: If the email is already registered.
            ConnectionAppError: If the database is unreachable.
            QueryAppError: If the insert fails for another reason.
        """
        clean_name = _normalize(name)
        clean_email = _normalize(email)
        if not clean_name or not clean_email:
            raise ValidationAppError(
                code="missing_required_fields",
                message="Name and email are required",
                details={"hint": "Provide non-empty 'name' and 'email' fields"},
            )

        user = await self._repository.create(clean_name, clean_email)
        await self._aggregator.invalidate_metrics()

        logger.info("user.created", extra={"user_id": user.id})
        return user
