"""Tests for prompt construction and timezone normalization."""

from datetime import datetime, timezone

import pytest

from soonlist.models.event import Event, EventMetadata
from soonlist.prompts import (
    PROMPT_VERSION,
    SYSTEM_MESSAGE_METADATA_VERSION,
    SYSTEM_MESSAGE_VERSION,
    get_prompts,
    normalize_timezone,
    render_system_message,
)


class TestNormalizeTimezone:
    """Test normalize_timezone."""

    @pytest.mark.parametrize("tz", ["America/New_York", "Europe/Berlin", "UTC", "Asia/Kolkata"])
    def test_known_zones_pass_through(self, tz):
        assert normalize_timezone(tz) == tz

    @pytest.mark.parametrize(
        "tz,expected",
        [
            ("+02:00", "Etc/GMT-2"),
            ("-07:00", "Etc/GMT+7"),
            ("-0700", "Etc/GMT+7"),
            ("UTC+2", "Etc/GMT-2"),
            ("GMT-5", "Etc/GMT+5"),
            ("+00:00", "UTC"),
        ],
    )
    def test_whole_hour_offsets_map_to_etc_zones(self, tz, expected):
        assert normalize_timezone(tz) == expected

    @pytest.mark.parametrize("tz", [None, "", "Not/AZone", "PST-ish", "+05:30", "+15:00", "../etc/passwd"])
    def test_unusable_values_fall_back_to_default(self, tz):
        assert normalize_timezone(tz) == "America/Los_Angeles"


class TestGetPrompts:
    """Test get_prompts."""

    def test_embeds_zoned_current_time(self):
        now = datetime(2024, 5, 14, 17, 0, tzinfo=timezone.utc)
        prompts = get_prompts("America/Los_Angeles", now=now)

        assert "2024-05-14T10:00:00-07:00[America/Los_Angeles]" in prompts.prompt.text
        assert "default timezone is America/Los_Angeles" in prompts.prompt.text
        assert "2024-05-14T10:00:00-07:00[America/Los_Angeles]" in prompts.prompt.text_metadata

    def test_invalid_timezone_uses_default(self):
        now = datetime(2024, 1, 10, 20, 0, tzinfo=timezone.utc)
        prompts = get_prompts("Nowhere/Special", now=now)
        assert "2024-01-10T12:00:00-08:00[America/Los_Angeles]" in prompts.prompt.text

    def test_versions(self):
        prompts = get_prompts("America/Chicago")
        assert prompts.prompt_version == PROMPT_VERSION == "v2024.5.14.1"
        assert prompts.prompt.version == PROMPT_VERSION
        assert prompts.system_prompt_event.version == SYSTEM_MESSAGE_VERSION == "v2024.03.16.1"
        assert prompts.system_prompt_metadata.version == SYSTEM_MESSAGE_METADATA_VERSION

    def test_event_and_metadata_instructions_differ(self):
        prompts = get_prompts("America/Chicago")
        assert prompts.prompt.text != prompts.prompt.text_metadata
        assert "calendar event details" in prompts.prompt.text
        assert "platform" in prompts.prompt.text_metadata


class TestRenderSystemMessage:
    """Test render_system_message."""

    def test_event_schema_uses_camel_case_fields(self):
        prompts = get_prompts("UTC")
        rendered = render_system_message(prompts.system_prompt_event, Event)

        assert rendered.startswith(prompts.system_prompt_event.text)
        assert '"startDate"' in rendered
        assert '"timeZone"' in rendered
        assert '"start_date"' not in rendered

    def test_metadata_schema_lists_vocabulary(self):
        prompts = get_prompts("UTC")
        rendered = render_system_message(prompts.system_prompt_metadata, EventMetadata)

        assert '"priceType"' in rendered
        assert "notaflof" in rendered
        assert "wheelchairAccessible" in rendered
