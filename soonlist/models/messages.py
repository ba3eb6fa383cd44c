"""Request and response models for the capture procedures."""

from typing import Any, List, Literal, Optional
from pydantic import BaseModel, Field, model_validator

from soonlist.models.database_event import JoinedEvent, Visibility
from soonlist.models.event import CamelModel, EventMetadata, EventWithMetadata


CaptureMethod = Literal["rawText", "url", "image"]


class ListSelection(CamelModel):
    """A list the new event should be attached to."""

    value: str = Field(..., min_length=1)


class CreateEventRequest(CamelModel):
    """Common fields for every create-from-input procedure."""

    timezone: str
    user_id: str
    username: str
    lists: List[ListSelection] = Field(default_factory=list)
    visibility: Optional[Visibility] = None
    send_notification: bool = True
    comment: Optional[str] = None


class CreateFromRawTextRequest(CreateEventRequest):
    raw_text: str


class CreateFromUrlRequest(CreateEventRequest):
    url: str


class CreateFromImageRequest(CreateEventRequest):
    """Image input, either inline base64 or a remote URL."""

    base64_image: Optional[str] = None
    image_url: Optional[str] = None

    @model_validator(mode="after")
    def _require_image(self):
        if not self.base64_image and not self.image_url:
            raise ValueError("Either base64Image or imageUrl is required")
        return self


class CreateEventResponse(CamelModel):
    """Successful capture: the id and the joined event record."""

    success: bool = True
    event_id: str
    event: JoinedEvent


class UpdateEventRequest(CamelModel):
    id: str
    event: EventWithMetadata
    event_metadata: Optional[EventMetadata] = None
    comment: Optional[str] = None
    lists: List[ListSelection] = Field(default_factory=list)
    visibility: Optional[Visibility] = None


class EventIdRequest(CamelModel):
    id: str


class CallerIdentity(BaseModel):
    """Authenticated caller, as asserted by the upstream identity provider."""

    user_id: Optional[str] = None
    session_id: Optional[str] = None
    roles: List[str] = Field(default_factory=list)

    @property
    def is_admin(self) -> bool:
        return "admin" in self.roles


class ExtractionInput(BaseModel):
    """Input to the extraction step; exactly one of the content fields is used."""

    timezone: str
    raw_text: Optional[str] = None
    image_url: Optional[str] = None
    base64_image: Optional[str] = None
    source_url: Optional[str] = None

    def logged_input(self) -> Optional[str]:
        """Input excerpt for traces; base64 payloads are never logged."""
        if self.source_url:
            return self.source_url
        if self.raw_text:
            return self.raw_text
        if self.image_url:
            return self.image_url
        if self.base64_image:
            return "[base64 image omitted]"
        return None


class NotificationContent(BaseModel):
    title: str
    subtitle: str
    body: str


class NotificationDispatch(BaseModel):
    """One push notification, addressed to all of a user's devices."""

    notification_id: str
    user_id: str
    title: str
    subtitle: str
    body: str
    url: str
    event_id: Optional[str] = None
    source: Optional[str] = None
    method: Optional[str] = None


class NotificationResult(BaseModel):
    success: bool
    id: Optional[str] = None
    error: Optional[str] = None
    recipients: Optional[int] = None


class ErrorBody(BaseModel):
    code: str
    message: str
    data: Optional[Any] = None


class ErrorResponse(BaseModel):
    error: ErrorBody
