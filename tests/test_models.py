"""Tests for event, persistence and request models."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from soonlist.models.database_event import NewEvent
from soonlist.models.event import Event, EventMetadata, EventWithMetadata, GeneratedObject
from soonlist.models.messages import (
    CallerIdentity,
    CreateFromImageRequest,
    CreateFromRawTextRequest,
    ExtractionInput,
)


class TestEvent:
    """Test the Event schema."""

    def test_parses_camel_case(self, event_payload):
        event = Event.model_validate(event_payload)
        assert event.start_date == "2024-05-14"
        assert event.time_zone == "America/Los_Angeles"

    def test_optional_fields_default(self):
        event = Event.model_validate({"name": "Picnic", "startDate": "2024-06-01", "endDate": "2024-06-01"})
        assert event.description == ""
        assert event.location == ""
        assert event.start_time is None
        assert event.images is None

    def test_name_required(self):
        with pytest.raises(ValidationError):
            Event.model_validate({"startDate": "2024-06-01", "endDate": "2024-06-01"})

    @pytest.mark.parametrize("bad_date", ["06/01/2024", "2024-6-1", "tomorrow"])
    def test_rejects_non_iso_dates(self, bad_date):
        with pytest.raises(ValidationError):
            Event.model_validate({"name": "Picnic", "startDate": bad_date, "endDate": "2024-06-01"})


class TestEventMetadata:
    """Test the loose metadata schema."""

    def test_comma_separated_lists_are_split(self):
        metadata = EventMetadata.model_validate(
            {"performers": "Ellis Trio, DJ Nova ,", "mentions": "bluroom", "accessibility": "wheelchairAccessible"}
        )
        assert metadata.performers == ["Ellis Trio", "DJ Nova"]
        assert metadata.mentions == ["bluroom"]
        assert metadata.accessibility == ["wheelchairAccessible"]

    def test_accepts_off_vocabulary_values(self):
        metadata = EventMetadata.model_validate({"category": "astrology", "priceType": "sliding-scale"})
        assert metadata.category == "astrology"
        assert metadata.price_type == "sliding-scale"

    def test_everything_optional(self):
        assert EventMetadata.model_validate({}).to_payload() == {}


class TestNewEvent:
    """Test NewEvent payload helpers."""

    def test_payloads(self, sample_event):
        new_event = NewEvent(
            id="abc123def456",
            user_id="user_1",
            user_name="jaron",
            event=sample_event,
            event_metadata=sample_event.event_metadata,
            start_date_time=datetime(2024, 5, 15, 2, 0, tzinfo=timezone.utc),
            end_date_time=datetime(2024, 5, 15, 4, 0, tzinfo=timezone.utc),
        )

        payload = new_event.event_payload()
        assert payload["startDate"] == "2024-05-14"
        assert "eventMetadata" not in payload
        assert "images" not in payload
        assert new_event.metadata_payload() == {"category": "music", "type": "concert", "performers": ["Ellis Trio"]}
        assert new_event.visibility == "private"

    def test_user_name_must_not_be_empty(self, sample_event):
        with pytest.raises(ValidationError):
            NewEvent(
                id="abc123def456",
                user_id="user_1",
                user_name="",
                event=sample_event,
                start_date_time=datetime(2024, 5, 15, tzinfo=timezone.utc),
                end_date_time=datetime(2024, 5, 15, tzinfo=timezone.utc),
            )


class TestRequests:
    """Test request models."""

    def test_raw_text_request_from_camel_case(self):
        request = CreateFromRawTextRequest.model_validate(
            {
                "rawText": "Jazz tonight at 7",
                "timezone": "America/Los_Angeles",
                "userId": "user_1",
                "username": "jaron",
                "lists": [{"value": "list_1"}],
                "sendNotification": False,
            }
        )
        assert request.raw_text == "Jazz tonight at 7"
        assert request.lists[0].value == "list_1"
        assert request.send_notification is False
        assert request.visibility is None

    def test_image_request_requires_an_image(self):
        with pytest.raises(ValidationError):
            CreateFromImageRequest.model_validate(
                {"timezone": "UTC", "userId": "user_1", "username": "jaron"}
            )

    def test_image_request_accepts_url(self):
        request = CreateFromImageRequest.model_validate(
            {"timezone": "UTC", "userId": "user_1", "username": "jaron", "imageUrl": "https://img.example/a.webp"}
        )
        assert request.image_url == "https://img.example/a.webp"

    def test_caller_admin_role(self):
        assert CallerIdentity(user_id="u", roles=["admin"]).is_admin
        assert not CallerIdentity(user_id="u", roles=["member"]).is_admin


class TestExtractionInput:
    """Test the logged input excerpt."""

    def test_base64_is_never_logged(self):
        extraction_input = ExtractionInput(timezone="UTC", base64_image="iVBORw0KGgo=")
        assert extraction_input.logged_input() == "[base64 image omitted]"

    def test_source_url_preferred_over_fetched_text(self):
        extraction_input = ExtractionInput(timezone="UTC", raw_text="page text", source_url="https://example.com/e")
        assert extraction_input.logged_input() == "https://example.com/e"

    def test_raw_text_then_image_url(self):
        assert ExtractionInput(timezone="UTC", raw_text="hi").logged_input() == "hi"
        assert ExtractionInput(timezone="UTC", image_url="https://i/x.png").logged_input() == "https://i/x.png"


def test_generated_object_sanitized_flag(sample_event):
    clean = GeneratedObject(object=sample_event, raw_response="{}")
    sanitized = GeneratedObject(object=sample_event, raw_response="{}", warnings=["sanitized-json-fallback"])
    assert not clean.sanitized
    assert sanitized.sanitized
    assert isinstance(clean.object, EventWithMetadata)
