"""Authorized reads and writes of existing events."""

from typing import Optional

import structlog

from soonlist.database.repositories import EventRepository
from soonlist.errors import ForbiddenError, NotFoundError, UnauthorizedError
from soonlist.materializer import compute_utc_range, resolve_event_times
from soonlist.models.config import DEFAULT_TIMEZONE
from soonlist.models.database_event import EventUpdate, JoinedEvent
from soonlist.models.messages import CallerIdentity, UpdateEventRequest

logger = structlog.get_logger(__name__)


class EventService:
    """Update, delete and read events on behalf of a caller."""

    def __init__(self, repository: EventRepository, default_timezone: str = DEFAULT_TIMEZONE):
        self.repository = repository
        self.default_timezone = default_timezone
        self.logger = logger.bind(component="event_service")

    async def _authorize(self, caller: CallerIdentity, event_id: str, operation: str) -> str:
        """Return the event owner if the caller may modify the event."""
        if not caller.user_id:
            raise UnauthorizedError("Authentication required", data={"operation": operation})

        owner = await self.repository.find_owner(event_id)
        if owner is None:
            raise NotFoundError("Event not found", data={"operation": operation, "eventId": event_id})

        if owner != caller.user_id and not caller.is_admin:
            self.logger.warning(
                "Caller may not modify event",
                operation=operation,
                event_id=event_id,
                user_id=caller.user_id,
            )
            raise ForbiddenError(
                "You do not have permission to modify this event",
                data={"operation": operation, "eventId": event_id},
            )
        return owner

    async def get(self, event_id: str) -> JoinedEvent:
        event = await self.repository.get_joined(event_id)
        if event is None:
            raise NotFoundError("Event not found", data={"operation": "event.get", "eventId": event_id})
        return event

    async def update(self, caller: CallerIdentity, request: UpdateEventRequest) -> JoinedEvent:
        """Replace an event, its comment and its lists.

        Raises:
            UnauthorizedError: No caller identity
            NotFoundError: Unknown event id
            ForbiddenError: Caller is neither owner nor admin
            BadRequestError: Unparseable date, time or zone
        """
        owner = await self._authorize(caller, request.id, "event.update")
        start_utc, end_utc = compute_utc_range(request.event, self.default_timezone)

        await self.repository.update_with_relations(
            EventUpdate(
                id=request.id,
                event=request.event.model_copy(update=resolve_event_times(request.event, self.default_timezone)),
                event_metadata=request.event_metadata,
                start_date_time=start_utc,
                end_date_time=end_utc,
                visibility=request.visibility,
            ),
            comment_user_id=owner,
            comment=request.comment,
            list_ids=[selection.value for selection in request.lists],
        )
        return await self.get(request.id)

    async def delete(self, caller: CallerIdentity, event_id: str) -> Optional[str]:
        """Delete an event with its comments, follows and list memberships."""
        await self._authorize(caller, event_id, "event.delete")
        deleted = await self.repository.delete_with_relations(event_id)
        if not deleted:
            raise NotFoundError("Event not found", data={"operation": "event.delete", "eventId": event_id})
        return event_id
