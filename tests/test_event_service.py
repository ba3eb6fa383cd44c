"""Tests for EventService authorization and update flow."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import make_joined_event
from soonlist.errors import BadRequestError, ForbiddenError, NotFoundError, UnauthorizedError
from soonlist.event_service import EventService
from soonlist.models.messages import CallerIdentity, UpdateEventRequest


OWNER = CallerIdentity(user_id="user_1")
STRANGER = CallerIdentity(user_id="user_2")
ADMIN = CallerIdentity(user_id="user_3", roles=["admin"])
ANONYMOUS = CallerIdentity()


@pytest.fixture
def repository():
    repo = MagicMock()
    repo.find_owner = AsyncMock(return_value="user_1")
    repo.get_joined = AsyncMock(return_value=make_joined_event())
    repo.update_with_relations = AsyncMock(return_value=None)
    repo.delete_with_relations = AsyncMock(return_value=True)
    return repo


@pytest.fixture
def service(repository):
    return EventService(repository)


@pytest.fixture
def update_request(event_payload):
    return UpdateEventRequest.model_validate(
        {
            "id": "abc123def456",
            "event": event_payload,
            "comment": "Bring earplugs",
            "lists": [{"value": "l1"}],
            "visibility": "public",
        }
    )


class TestUpdate:
    """Test EventService.update."""

    @pytest.mark.asyncio
    async def test_owner_updates(self, service, repository, update_request):
        event = await service.update(OWNER, update_request)

        assert event.id == "abc123def456"
        update = repository.update_with_relations.call_args.args[0]
        assert update.id == "abc123def456"
        assert update.start_date_time == datetime(2024, 5, 15, 2, 0, tzinfo=timezone.utc)
        assert update.end_date_time == datetime(2024, 5, 15, 4, 0, tzinfo=timezone.utc)
        assert update.visibility == "public"
        assert repository.update_with_relations.call_args.kwargs == {
            "comment_user_id": "user_1",
            "comment": "Bring earplugs",
            "list_ids": ["l1"],
        }

    @pytest.mark.asyncio
    async def test_stored_event_carries_default_times_and_zone(self, service, repository):
        request = UpdateEventRequest.model_validate(
            {"id": "abc123def456", "event": {"name": "Open Studio", "startDate": "2024-01-10", "endDate": "2024-01-10"}}
        )

        await service.update(OWNER, request)

        stored = repository.update_with_relations.call_args.args[0].event
        assert (stored.start_time, stored.end_time, stored.time_zone) == ("00:00", "23:59", "America/Los_Angeles")

    @pytest.mark.asyncio
    async def test_admin_comment_belongs_to_owner(self, service, repository, update_request):
        await service.update(ADMIN, update_request)
        assert repository.update_with_relations.call_args.kwargs["comment_user_id"] == "user_1"

    @pytest.mark.asyncio
    async def test_stranger_is_forbidden(self, service, repository, update_request):
        with pytest.raises(ForbiddenError):
            await service.update(STRANGER, update_request)
        repository.update_with_relations.assert_not_called()

    @pytest.mark.asyncio
    async def test_anonymous_is_unauthorized(self, service, repository, update_request):
        with pytest.raises(UnauthorizedError):
            await service.update(ANONYMOUS, update_request)
        repository.find_owner.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_event(self, service, repository, update_request):
        repository.find_owner.return_value = None
        with pytest.raises(NotFoundError):
            await service.update(OWNER, update_request)

    @pytest.mark.asyncio
    async def test_bad_date_is_bad_request(self, service, repository, event_payload):
        request = UpdateEventRequest.model_validate(
            {"id": "abc123def456", "event": {**event_payload, "endTime": "late"}}
        )
        with pytest.raises(BadRequestError):
            await service.update(OWNER, request)
        repository.update_with_relations.assert_not_called()


class TestDelete:
    """Test EventService.delete."""

    @pytest.mark.asyncio
    async def test_owner_deletes(self, service, repository):
        assert await service.delete(OWNER, "abc123def456") == "abc123def456"
        repository.delete_with_relations.assert_awaited_once_with("abc123def456")

    @pytest.mark.asyncio
    async def test_admin_deletes(self, service, repository):
        assert await service.delete(ADMIN, "abc123def456") == "abc123def456"

    @pytest.mark.asyncio
    async def test_stranger_is_forbidden(self, service, repository):
        with pytest.raises(ForbiddenError):
            await service.delete(STRANGER, "abc123def456")
        repository.delete_with_relations.assert_not_called()

    @pytest.mark.asyncio
    async def test_concurrently_deleted(self, service, repository):
        repository.delete_with_relations.return_value = False
        with pytest.raises(NotFoundError):
            await service.delete(OWNER, "abc123def456")


class TestGet:
    """Test EventService.get."""

    @pytest.mark.asyncio
    async def test_found(self, service):
        event = await service.get("abc123def456")
        assert event.user_name == "jaron"

    @pytest.mark.asyncio
    async def test_missing(self, service, repository):
        repository.get_joined.return_value = None
        with pytest.raises(NotFoundError):
            await service.get("nope")
