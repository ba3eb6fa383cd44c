"""Versioned prompts for event and metadata extraction."""

import json
import re
from datetime import datetime, timezone as dt_timezone
from typing import Optional, Type
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel

from soonlist.models.config import DEFAULT_TIMEZONE

PROMPT_VERSION = "v2024.5.14.1"
SYSTEM_MESSAGE_VERSION = "v2024.03.16.1"
SYSTEM_MESSAGE_METADATA_VERSION = "v2024.10.16.1"

_OFFSET_RE = re.compile(r"^(?:UTC|GMT)?\s*([+-])(\d{1,2})(?::?(\d{2}))?$", re.I)


class PromptText(BaseModel):
    text: str
    version: str


class Prompt(BaseModel):
    """User-turn instructions: ``text`` for the event, ``text_metadata`` for metadata."""

    text: str
    text_metadata: str
    version: str


class Prompts(BaseModel):
    system_prompt_event: PromptText
    system_prompt_metadata: PromptText
    prompt: Prompt
    prompt_version: str


SYSTEM_MESSAGE = (
    "You are an AI assistant that extracts calendar event details from text or images. "
    "Provide structured outputs in JSON format, strictly following the schema provided. "
    "Ensure that all enum fields contain only valid values as specified in the schema. "
    "If a valid enum value cannot be determined, omit the field entirely. "
    "For non-enum fields, omit them if they are undefined or cannot be reasonably inferred from the given data. "
    "Make reasonable assumptions when needed, but prioritize facts and direct information backed by the given data "
    "or logical inference. Acknowledge uncertainties and avoid unsupported statements. "
    "Keep responses concise, clear, and relevant."
)

SYSTEM_MESSAGE_METADATA = (
    "You are an AI assistant that classifies calendar events from text or images. "
    "Provide structured outputs in JSON format, strictly following the schema provided. "
    "Use only the listed values for category, type, price type, age restriction, platform and accessibility. "
    "If a value cannot be determined, omit the field entirely. Never invent performers, prices or mentions "
    "that are not present in the given data."
)


def _event_text(date: str, timezone: str) -> str:
    return f"""# CONTEXT
The current date is {date}, and the default timezone is {timezone} unless specified otherwise.

## YOUR JOB
Above, I pasted a text or image from which to extract calendar event details.

You will
1. Identify details of the primary event mentioned in the text or image.
2. Remove the perspective or opinion from the input, focusing only on factual details.
3. Extract and format these details into a valid JSON response, strictly following the schema below.
4. Infer any missing information based on event context, type, or general conventions.
5. Write your JSON response by summarizing the event details from the provided data or your own inferred knowledge. Your response must be detailed, specific, and directly relevant to the JSON schema requirements.

Stylistically write in short, approachable, and professional language, like an editor of the Village Voice event section.
Stick to known facts, and be concise. Use proper capitalization for all fields.
No new adjectives/adverbs not in source text. No editorializing. No fluff. Nothing should be described as "engaging", "compelling", etc...
Avoid using phrases like 'join us,' 'come celebrate,' or any other invitations. Instead, maintain a neutral and descriptive tone. For example, instead of saying 'Join a family-friendly bike ride,' describe it as 'A family-friendly bike ride featuring murals, light installations, and a light-up dance party.'
"""


def _metadata_text(date: str, timezone: str) -> str:
    return f"""# CONTEXT
The current date is {date}, and the default timezone is {timezone} unless specified otherwise.

## YOUR JOB
Above, I pasted a text or image describing an event.

You will
1. Identify the primary event mentioned in the text or image.
2. Identify the platform from which the input was extracted, and extract all usernames @-mentioned.
3. Classify the event's category and type, its price type and price range, and its age restriction.
4. List performers or speakers named in the input, and any accessibility features stated.
5. Return a valid JSON response, strictly following the schema below. Omit anything not supported by the input.
"""


def normalize_timezone(timezone: Optional[str]) -> str:
    """Map a timezone string to an IANA name, falling back to the default zone.

    Whole-hour UTC offsets (``+02:00``, ``UTC-7``) map to ``Etc/GMT`` zones.
    """
    if not timezone:
        return DEFAULT_TIMEZONE

    tz = timezone.strip()
    match = _OFFSET_RE.match(tz)
    if match:
        sign, hours, minutes = match.group(1), int(match.group(2)), int(match.group(3) or 0)
        if minutes or hours > 14:
            return DEFAULT_TIMEZONE
        if hours == 0:
            return "UTC"
        # Etc/GMT zones use inverted signs.
        return f"Etc/GMT{'-' if sign == '+' else '+'}{hours}"

    try:
        ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError):
        return DEFAULT_TIMEZONE
    return tz


def get_prompt(timezone: Optional[str] = DEFAULT_TIMEZONE, now: Optional[datetime] = None) -> Prompt:
    timezone_iana = normalize_timezone(timezone)
    current = (now or datetime.now(dt_timezone.utc)).astimezone(ZoneInfo(timezone_iana))
    date = f"{current.isoformat(timespec='seconds')}[{timezone_iana}]"
    return Prompt(
        text=_event_text(date, timezone_iana),
        text_metadata=_metadata_text(date, timezone_iana),
        version=PROMPT_VERSION,
    )


def get_system_message() -> PromptText:
    return PromptText(text=SYSTEM_MESSAGE, version=SYSTEM_MESSAGE_VERSION)


def get_system_message_metadata() -> PromptText:
    return PromptText(text=SYSTEM_MESSAGE_METADATA, version=SYSTEM_MESSAGE_METADATA_VERSION)


def get_prompts(timezone: Optional[str], now: Optional[datetime] = None) -> Prompts:
    """Get the system prompts and user instructions for a timezone.

    Pure apart from reading the clock; never raises.

    Args:
        timezone: IANA name or UTC offset; anything unusable falls back to the default
        now: Current instant, for tests

    Returns:
        Prompts for the event and metadata generations
    """
    prompt = get_prompt(timezone, now=now)
    return Prompts(
        system_prompt_event=get_system_message(),
        system_prompt_metadata=get_system_message_metadata(),
        prompt=prompt,
        prompt_version=prompt.version,
    )


def render_system_message(system: PromptText, schema: Type[BaseModel]) -> str:
    """Append the target JSON schema to a system message.

    JSON-mode models only guarantee syntactically valid JSON, so the shape
    has to be spelled out in the conversation.
    """
    schema_json = json.dumps(schema.model_json_schema(by_alias=True), indent=2)
    return f"{system.text}\n\nRespond with a single JSON object matching this JSON schema:\n{schema_json}"
