"""Database-compatible event models for the persistence layer."""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

from soonlist.models.event import CamelModel, EventMetadata, EventWithMetadata


Visibility = Literal["public", "private"]


class NewEvent(CamelModel):
    """Materialized event values, exactly as inserted into the events table."""

    id: str = Field(..., min_length=1, description="Public event identifier")
    user_id: str = Field(..., min_length=1)
    user_name: str = Field(..., min_length=1)
    event: EventWithMetadata
    event_metadata: Optional[EventMetadata] = None
    start_date_time: datetime = Field(..., description="Absolute start instant (UTC)")
    end_date_time: datetime = Field(..., description="Absolute end instant (UTC)")
    visibility: Visibility = "private"

    def event_payload(self) -> Dict[str, Any]:
        """The event JSON column; metadata lives in its own column."""
        return self.event.model_dump(
            by_alias=True, exclude_none=True, exclude={"event_metadata"}, mode="json"
        )

    def metadata_payload(self) -> Optional[Dict[str, Any]]:
        if self.event_metadata is None:
            return None
        return self.event_metadata.to_payload()


class EventUpdate(CamelModel):
    """Replacement values for an existing event."""

    id: str
    event: EventWithMetadata
    event_metadata: Optional[EventMetadata] = None
    start_date_time: datetime
    end_date_time: datetime
    visibility: Optional[Visibility] = None


class ListRecord(CamelModel):
    model_config = ConfigDict(extra="allow")

    id: str
    user_id: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    visibility: Optional[str] = None


class UserRecord(CamelModel):
    model_config = ConfigDict(extra="allow")

    id: str
    username: str
    display_name: Optional[str] = None
    user_image: Optional[str] = None
    lists: List[ListRecord] = Field(default_factory=list)


class CommentRecord(CamelModel):
    id: int
    event_id: str
    user_id: str
    content: str
    created_at: Optional[datetime] = None


class EventFollowRecord(CamelModel):
    user_id: str
    event_id: str


class EventToListRecord(CamelModel):
    event_id: str
    list_id: str
    list: Optional[ListRecord] = None


class JoinedEvent(CamelModel):
    """An event read back with its owner, follows, comments and lists."""

    id: str
    user_id: str
    user_name: str
    event: Dict[str, Any]
    event_metadata: Optional[Dict[str, Any]] = None
    start_date_time: datetime
    end_date_time: datetime
    visibility: Visibility = "private"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    user: Optional[UserRecord] = None
    event_follows: List[EventFollowRecord] = Field(default_factory=list)
    comments: List[CommentRecord] = Field(default_factory=list)
    event_to_lists: List[EventToListRecord] = Field(default_factory=list)
