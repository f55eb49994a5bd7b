"""Tests for UserService validation, conflicts and metrics invalidation."""

import asyncio

import pytest

from backend.core.errors import ConflictAppError, ConnectionAppError, ValidationAppError
from backend.services.user_service import UserService


@pytest.fixture
def service(user_repository, aggregator) -> UserService:
    return UserService(repository=user_repository, aggregator=aggregator, list_limit=10)


@pytest.mark.asyncio
async def test_create_user_assigns_id_and_strips_input(service):
    user = await service.create_user("  Ada Lovelace ", " ada@example.com ")

    assert user.id == 1
    assert user.name == "Ada Lovelace"
    assert user.email == "ada@example.com"
    assert user.created_at is not None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "name,email",
    [
        (None, "ada@example.com"),
        ("Ada", None),
        ("", "ada@example.com"),
        ("Ada", "   "),
        (None, None),
    ],
)
async def test_create_user_requires_name_and_email(service, user_repository, name, email):
    with pytest.raises(ValidationAppError) as exc_info:
        await service.create_user(name, email)

    assert exc_info.value.code == "missing_required_fields"
    assert exc_info.value.message == "Name and email are required"
    assert await user_repository.count() == 0


@pytest.mark.asyncio
async def test_duplicate_email_is_conflict(service):
    await service.create_user("Ada", "ada@example.com")

    with pytest.raises(ConflictAppError):
        await service.create_user("Other Ada", "ada@example.com")


@pytest.mark.asyncio
async def test_create_invalidates_cached_metrics(service, aggregator):
    before = await aggregator.get_metrics()
    assert before.active_users == 0

    await service.create_user("Ada", "ada@example.com")

    after = await aggregator.get_metrics()
    assert after.active_users == 1


@pytest.mark.asyncio
async def test_failed_create_keeps_cached_metrics(service, aggregator, user_repository):
    await aggregator.get_metrics()

    with pytest.raises(ValidationAppError):
        await service.create_user("", "")

    await aggregator.get_metrics()
    assert user_repository.count_calls == 1


@pytest.mark.asyncio
async def test_concurrent_creates_get_distinct_ids(service):
    users = await asyncio.gather(
        *(service.create_user(f"User {i}", f"user{i}@example.com") for i in range(5))
    )

    assert len({u.id for u in users}) == 5

    listed = await service.list_users()
    assert [u.id for u in listed] == sorted((u.id for u in users), reverse=True)


@pytest.mark.asyncio
async def test_concurrent_duplicate_emails_admit_exactly_one(service):
    results = await asyncio.gather(
        service.create_user("First", "same@example.com"),
        service.create_user("Second", "same@example.com"),
        return_exceptions=True,
    )

    conflicts = [r for r in results if isinstance(r, ConflictAppError)]
    assert len(conflicts) == 1
    assert len(await service.list_users()) == 1


@pytest.mark.asyncio
async def test_list_users_is_newest_first_and_capped(service):
    for i in range(12):
        await service.create_user(f"User {i}", f"user{i}@example.com")

    listed = await service.list_users()
    assert len(listed) == 10
    assert listed[0].email == "user11@example.com"
    assert listed[-1].email == "user2@example.com"

    assert len(await service.list_users(limit=50)) == 10
    assert len(await service.list_users(limit=3)) == 3


@pytest.mark.asyncio
async def test_list_users_propagates_store_errors(service, user_repository):
    user_repository.down = True

    with pytest.raises(ConnectionAppError):
        await service.list_users()
