"""Event-related data models.

These are the schemas the language model is asked to fill in. Field names
are snake_case in Python and camelCase on the wire (and in the JSON schema
sent to the model).
"""

from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


class CamelModel(BaseModel):
    """Base model using camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> Dict[str, Any]:
        """Dump to a camelCase dict without unset optional fields."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class Platform(str, Enum):
    INSTAGRAM = "instagram"
    UNKNOWN = "unknown"


class AgeRestriction(str, Enum):
    ALL_AGES = "all-ages"
    EIGHTEEN_PLUS = "18+"
    TWENTY_ONE_PLUS = "21+"
    UNKNOWN = "unknown"


class PriceType(str, Enum):
    DONATION = "donation"
    FREE = "free"
    NOTAFLOF = "notaflof"
    PAID = "paid"
    UNKNOWN = "unknown"


class EventCategory(str, Enum):
    ARTS = "arts"
    BUSINESS = "business"
    COMMUNITY = "community"
    CULTURE = "culture"
    EDUCATION = "education"
    ENTERTAINMENT = "entertainment"
    FOOD = "food"
    HEALTH = "health"
    LIFESTYLE = "lifestyle"
    LITERATURE = "literature"
    MUSIC = "music"
    RELIGION = "religion"
    SCIENCE = "science"
    SPORTS = "sports"
    TECH = "tech"
    UNKNOWN = "unknown"


class EventType(str, Enum):
    COMPETITION = "competition"
    CONCERT = "concert"
    CONFERENCE = "conference"
    EXHIBITION = "exhibition"
    FESTIVAL = "festival"
    GAME = "game"
    MEETING = "meeting"
    MOVIE = "movie"
    OPENING = "opening"
    PARTY = "party"
    PERFORMANCE = "performance"
    SEMINAR = "seminar"
    SHOW = "show"
    UNKNOWN = "unknown"
    WEBINAR = "webinar"
    WORKSHOP = "workshop"


class AccessibilityType(str, Enum):
    CLOSED_CAPTIONING = "closedCaptioning"
    MASKS_REQUIRED = "masksRequired"
    MASKS_SUGGESTED = "masksSuggested"
    SIGN_LANGUAGE_INTERPRETATION = "signLanguageInterpretation"
    WHEELCHAIR_ACCESSIBLE = "wheelchairAccessible"


def _split_list(value: Any) -> Any:
    """Coerce a comma-separated string into a list of stripped strings."""
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return value


class EventMetadata(CamelModel):
    """Loose event metadata.

    Every field is optional and enum-like fields accept any string, since
    model output is not always complete or on-vocabulary. List fields may
    arrive as comma-separated strings and are normalized here, once.
    """

    accessibility: Optional[List[str]] = Field(
        default=None,
        description=f"Accessibility features, any of: {', '.join(a.value for a in AccessibilityType)}.",
    )
    accessibility_notes: Optional[str] = None
    age_restriction: Optional[str] = Field(
        default=None,
        description=f"One of: {', '.join(a.value for a in AgeRestriction)}.",
    )
    category: Optional[str] = Field(
        default=None,
        description=f"One of: {', '.join(c.value for c in EventCategory)}.",
    )
    mentions: Optional[List[str]] = Field(default=None, description="Usernames @-mentioned in the input.")
    performers: Optional[List[str]] = None
    price_max: Optional[float] = None
    price_min: Optional[float] = None
    price_type: Optional[str] = Field(
        default=None,
        description=f"One of: {', '.join(p.value for p in PriceType)}.",
    )
    source: Optional[str] = Field(
        default=None,
        description=f"Platform the input came from, one of: {', '.join(p.value for p in Platform)}.",
    )
    type: Optional[str] = Field(
        default=None,
        description=f"One of: {', '.join(t.value for t in EventType)}.",
    )

    @field_validator("accessibility", "mentions", "performers", mode="before")
    @classmethod
    def _normalize_lists(cls, v):
        return _split_list(v)


class Event(CamelModel):
    """Event details extracted from text or an image."""

    name: str = Field(
        ...,
        description="The event's name. Be specific and include any subtitle or edition. Do not include the location.",
    )
    description: str = Field(
        default="",
        description=(
            "Short description of the event, its significance, and what attendees can expect. "
            "If included in the source text, include the cost, allowed ages, rsvp details, "
            "performers, speakers, and any known times."
        ),
    )
    start_date: str = Field(..., pattern=DATE_PATTERN, description="Start date in YYYY-MM-DD format.")
    start_time: Optional[str] = Field(
        default=None,
        description="Start time. ALWAYS include if known. Omit ONLY if known to be an all-day event.",
    )
    end_date: str = Field(..., pattern=DATE_PATTERN, description="End date in YYYY-MM-DD format.")
    end_time: Optional[str] = Field(
        default=None,
        description="End time. ALWAYS include, inferring if necessary. Omit ONLY known to be an all-day event.",
    )
    time_zone: Optional[str] = Field(default=None, description="Timezone in IANA format.")
    location: str = Field(default="", description="Location of the event.")
    images: Optional[List[str]] = None


class EventWithMetadata(Event):
    """Event plus the separately generated metadata."""

    event_metadata: Optional[EventMetadata] = None


class GeneratedObject(BaseModel):
    """Result of one structured generation call.

    Transient: lives only inside a single pipeline invocation.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    object: Any
    raw_response: str = ""
    finish_reason: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)
    model: Optional[str] = None

    @property
    def sanitized(self) -> bool:
        return "sanitized-json-fallback" in self.warnings
