"""Turn a generated event into database-ready values."""

import secrets
import string
from datetime import date, datetime, time, timezone
from typing import Dict, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from soonlist.errors import BadRequestError
from soonlist.models.config import DEFAULT_TIMEZONE
from soonlist.models.database_event import NewEvent, Visibility
from soonlist.models.event import Event, EventWithMetadata

PUBLIC_ID_ALPHABET = string.ascii_lowercase + string.digits
PUBLIC_ID_LENGTH = 12

DEFAULT_START_TIME = "00:00"
DEFAULT_END_TIME = "23:59"

IMAGE_SLOTS = 4


def generate_public_id() -> str:
    """Random 12-character lowercase alphanumeric identifier."""
    return "".join(secrets.choice(PUBLIC_ID_ALPHABET) for _ in range(PUBLIC_ID_LENGTH))


def _parse_date(value: str, field: str) -> date:
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError) as e:
        raise BadRequestError(f"Invalid {field}: {value!r}", data={"field": field}, cause=e)


def _parse_time(value: str, field: str) -> time:
    try:
        parsed = time.fromisoformat(value)
    except (TypeError, ValueError) as e:
        raise BadRequestError(f"Invalid {field}: {value!r}", data={"field": field}, cause=e)
    return parsed.replace(tzinfo=None)


def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise BadRequestError(f"Invalid timeZone: {name!r}", data={"field": "timeZone"}, cause=e)


def resolve_event_times(event: Event, default_timezone: str = DEFAULT_TIMEZONE) -> Dict[str, str]:
    """Zone and times to store, with missing values filled by their defaults."""
    return {
        "time_zone": event.time_zone or default_timezone,
        "start_time": event.start_time or DEFAULT_START_TIME,
        "end_time": event.end_time or DEFAULT_END_TIME,
    }


def compute_utc_range(event: Event, default_timezone: str = DEFAULT_TIMEZONE) -> Tuple[datetime, datetime]:
    """Compose date, time and zone into absolute UTC start and end instants.

    Missing times default to the start and end of the day. Local times that
    fall in a DST gap resolve forward; ambiguous ones resolve to the earlier
    instant.

    Raises:
        BadRequestError: If a date, time or zone cannot be parsed
    """
    resolved = resolve_event_times(event, default_timezone)
    zone = _zone(resolved["time_zone"])

    start = datetime.combine(
        _parse_date(event.start_date, "startDate"),
        _parse_time(resolved["start_time"], "startTime"),
        tzinfo=zone,
    )
    end = datetime.combine(
        _parse_date(event.end_date, "endDate"),
        _parse_time(resolved["end_time"], "endTime"),
        tzinfo=zone,
    )
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def replicate_image(image_url: Optional[str]) -> Optional[list]:
    if not image_url:
        return None
    return [image_url] * IMAGE_SLOTS


def materialize_event(
    generated: EventWithMetadata,
    *,
    user_id: str,
    username: str,
    image_url: Optional[str] = None,
    visibility: Optional[Visibility] = None,
    default_timezone: str = DEFAULT_TIMEZONE,
) -> NewEvent:
    """Build the row values for a newly captured event.

    Args:
        generated: Validated event with its metadata
        user_id: Owner id
        username: Owner username
        image_url: Image to attach, replicated into every image slot
        visibility: Defaults to private
        default_timezone: Zone used when the event has none

    Returns:
        NewEvent ready for insertion
    """
    start_utc, end_utc = compute_utc_range(generated, default_timezone)

    event = generated.model_copy(
        update={
            **resolve_event_times(generated, default_timezone),
            "images": replicate_image(image_url),
            "event_metadata": None,
        }
    )

    return NewEvent(
        id=generate_public_id(),
        user_id=user_id,
        user_name=username,
        event=event,
        event_metadata=generated.event_metadata,
        start_date_time=start_utc,
        end_date_time=end_utc,
        visibility=visibility or "private",
    )
