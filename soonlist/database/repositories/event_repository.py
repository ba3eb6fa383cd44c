"""Event repository: events with their comment, list and follow relations."""

from datetime import datetime
from typing import List, Optional

import asyncpg
import structlog

from soonlist.database.connections import DatabaseManager
from soonlist.database.repositories.base import BaseRepository
from soonlist.errors import InternalServerError, NotFoundError
from soonlist.models.database_event import (
    CommentRecord,
    EventFollowRecord,
    EventToListRecord,
    EventUpdate,
    JoinedEvent,
    ListRecord,
    NewEvent,
    UserRecord,
)


logger = structlog.get_logger(__name__)


INSERT_EVENT = """
    INSERT INTO events (
        id, user_id, user_name, event, event_metadata,
        start_date_time, end_date_time, visibility
    )
    VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
"""

INSERT_COMMENT = """
    INSERT INTO comments (event_id, user_id, content)
    VALUES ($1, $2, $3)
"""

UPSERT_COMMENT = """
    INSERT INTO comments (event_id, user_id, content)
    VALUES ($1, $2, $3)
    ON CONFLICT (event_id, user_id)
    DO UPDATE SET content = EXCLUDED.content, updated_at = now()
"""

UPDATE_EVENT = """
    UPDATE events
    SET event = $2,
        event_metadata = $3,
        start_date_time = $4,
        end_date_time = $5,
        visibility = COALESCE($6, visibility),
        updated_at = now()
    WHERE id = $1
"""


def _unique(values: List[str]) -> List[str]:
    return list(dict.fromkeys(values))


class EventRepository(BaseRepository[JoinedEvent]):
    """Repository for events and their relations in PostgreSQL."""

    def __init__(self, db_manager: DatabaseManager):
        """Initialize event repository."""
        super().__init__(db_manager, "events")
        self.logger = logger.bind(component="event_repository")

    def _row_to_model(self, row: asyncpg.Record) -> JoinedEvent:
        """Convert an events row to a JoinedEvent without relations."""
        return JoinedEvent(
            id=row['id'],
            user_id=row['user_id'],
            user_name=row['user_name'],
            event=row['event'],
            event_metadata=row['event_metadata'],
            start_date_time=row['start_date_time'],
            end_date_time=row['end_date_time'],
            visibility=row['visibility'],
            created_at=row['created_at'],
            updated_at=row['updated_at'],
        )

    async def _replace_lists(self, conn: asyncpg.Connection, event_id: str, list_ids: List[str]) -> None:
        await conn.execute("DELETE FROM event_to_lists WHERE event_id = $1", event_id)
        if list_ids:
            await conn.executemany(
                "INSERT INTO event_to_lists (event_id, list_id) VALUES ($1, $2)",
                [(event_id, list_id) for list_id in _unique(list_ids)],
            )

    async def create_with_relations(
        self,
        new_event: NewEvent,
        comment: Optional[str] = None,
        list_ids: Optional[List[str]] = None,
    ) -> JoinedEvent:
        """
        Insert an event, its comment and its list memberships atomically.

        Args:
            new_event: Materialized event values
            comment: Owner comment; skipped when empty
            list_ids: Lists to attach the event to

        Returns:
            The committed event read back with its relations

        Raises:
            InternalServerError: If the committed event cannot be read back
        """
        try:
            async with self.db_manager.get_postgres_transaction() as conn:
                await conn.execute(
                    INSERT_EVENT,
                    new_event.id,
                    new_event.user_id,
                    new_event.user_name,
                    new_event.event_payload(),
                    new_event.metadata_payload(),
                    new_event.start_date_time,
                    new_event.end_date_time,
                    new_event.visibility,
                )

                if comment:
                    await conn.execute(INSERT_COMMENT, new_event.id, new_event.user_id, comment)

                if list_ids:
                    await self._replace_lists(conn, new_event.id, list_ids)

        except Exception as e:
            self.logger.error("Error creating event",
                            event_id=new_event.id, user_id=new_event.user_id, error=str(e))
            raise

        self.logger.info("Event created", event_id=new_event.id, user_id=new_event.user_id,
                         lists=len(list_ids or []), has_comment=bool(comment))

        joined = await self.get_joined(new_event.id)
        if joined is None:
            raise InternalServerError(
                "Event not found after creation",
                data={"operation": "create_with_relations", "eventId": new_event.id},
            )
        return joined

    async def get_joined(self, event_id: str) -> Optional[JoinedEvent]:
        """
        Read an event with its owner (and the owner's lists), follows,
        comments and list associations.

        Args:
            event_id: Public event id

        Returns:
            JoinedEvent if found, None otherwise
        """
        async with self.db_manager.get_postgres_connection() as conn:
            row = await conn.fetchrow("SELECT * FROM events WHERE id = $1", event_id)
            if row is None:
                return None
            event = self._row_to_model(row)

            user_row = await conn.fetchrow(
                "SELECT id, username, display_name, user_image FROM users WHERE id = $1",
                event.user_id,
            )
            if user_row is not None:
                list_rows = await conn.fetch(
                    "SELECT id, user_id, name, description, visibility FROM lists "
                    "WHERE user_id = $1 ORDER BY created_at",
                    event.user_id,
                )
                event.user = UserRecord(
                    **dict(user_row),
                    lists=[ListRecord(**dict(r)) for r in list_rows],
                )

            follow_rows = await conn.fetch(
                "SELECT user_id, event_id FROM event_follows WHERE event_id = $1",
                event_id,
            )
            event.event_follows = [EventFollowRecord(**dict(r)) for r in follow_rows]

            comment_rows = await conn.fetch(
                "SELECT id, event_id, user_id, content, created_at FROM comments "
                "WHERE event_id = $1 ORDER BY id",
                event_id,
            )
            event.comments = [CommentRecord(**dict(r)) for r in comment_rows]

            list_link_rows = await conn.fetch(
                """
                SELECT etl.event_id, etl.list_id,
                       l.user_id, l.name, l.description, l.visibility
                FROM event_to_lists etl
                JOIN lists l ON l.id = etl.list_id
                WHERE etl.event_id = $1
                ORDER BY l.name
                """,
                event_id,
            )
            event.event_to_lists = [
                EventToListRecord(
                    event_id=r['event_id'],
                    list_id=r['list_id'],
                    list=ListRecord(
                        id=r['list_id'],
                        user_id=r['user_id'],
                        name=r['name'],
                        description=r['description'],
                        visibility=r['visibility'],
                    ),
                )
                for r in list_link_rows
            ]

        return event

    async def update_with_relations(
        self,
        update: EventUpdate,
        comment_user_id: str,
        comment: Optional[str] = None,
        list_ids: Optional[List[str]] = None,
    ) -> None:
        """
        Replace an event's values, comment and list memberships atomically.

        The comment is upserted when given and deleted when absent. List
        memberships are always replaced, so an empty list detaches the
        event from every list.

        Raises:
            NotFoundError: If no event has the given id
        """
        event_payload = update.event.model_dump(
            by_alias=True, exclude_none=True, exclude={"event_metadata"}, mode="json"
        )
        metadata = update.event_metadata or update.event.event_metadata
        metadata_payload = metadata.to_payload() if metadata is not None else None

        try:
            async with self.db_manager.get_postgres_transaction() as conn:
                result = await conn.execute(
                    UPDATE_EVENT,
                    update.id,
                    event_payload,
                    metadata_payload,
                    update.start_date_time,
                    update.end_date_time,
                    update.visibility,
                )
                if result.split()[-1] == "0":
                    raise NotFoundError("Event not found", data={"eventId": update.id})

                if comment:
                    await conn.execute(UPSERT_COMMENT, update.id, comment_user_id, comment)
                else:
                    await conn.execute(
                        "DELETE FROM comments WHERE event_id = $1 AND user_id = $2",
                        update.id,
                        comment_user_id,
                    )

                await self._replace_lists(conn, update.id, list_ids or [])

        except Exception as e:
            self.logger.error("Error updating event", event_id=update.id, error=str(e))
            raise

        self.logger.info("Event updated", event_id=update.id, lists=len(list_ids or []))

    async def delete_with_relations(self, event_id: str) -> bool:
        """
        Delete an event and everything that references it atomically.

        Returns:
            True if the event was deleted, False if not found
        """
        try:
            async with self.db_manager.get_postgres_transaction() as conn:
                await conn.execute("DELETE FROM event_to_lists WHERE event_id = $1", event_id)
                await conn.execute("DELETE FROM event_follows WHERE event_id = $1", event_id)
                await conn.execute("DELETE FROM comments WHERE event_id = $1", event_id)
                result = await conn.execute("DELETE FROM events WHERE id = $1", event_id)

        except Exception as e:
            self.logger.error("Error deleting event", event_id=event_id, error=str(e))
            raise

        deleted = result.split()[-1] == "1"
        if deleted:
            self.logger.info("Event deleted", event_id=event_id)
        return deleted

    async def find_owner(self, event_id: str) -> Optional[str]:
        """Return the owning user id, or None if the event does not exist."""
        event = await self.find_by_id(event_id)
        return event.user_id if event else None

    async def count_created_between(self, user_id: str, start: datetime, end: datetime) -> int:
        """Count the user's events created in ``[start, end)``."""
        return await self.count(
            "user_id = $1 AND created_at >= $2 AND created_at < $3",
            [user_id, start, end],
        )
