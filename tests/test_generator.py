"""Tests for StructuredGenerator: model calls, fallback, sanitizing and tracing."""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from conftest import make_completion
from soonlist.agents.base import GenerationContext, StructuredGenerator
from soonlist.errors import GenerationError
from soonlist.models.config import GenerationConfig
from soonlist.models.event import Event
from soonlist.trace_processor import LoggingTracer


def _connection_error():
    return openai.APIConnectionError(request=httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions"))


@pytest.fixture
def mock_client():
    client = MagicMock()
    client.chat.completions.create = AsyncMock()
    return client


@pytest.fixture
def tracer():
    return LoggingTracer()


@pytest.fixture
def generator(mock_client, tracer):
    config = GenerationConfig(model="primary/model", fallback_models=["fallback/model"])
    return StructuredGenerator(mock_client, tracer, config)


MESSAGES = [{"role": "system", "content": "sys"}, {"role": "user", "content": "Jazz tonight"}]


class TestGenerate:
    """Test StructuredGenerator.generate."""

    @pytest.mark.asyncio
    async def test_clean_json(self, generator, mock_client, tracer, event_payload):
        mock_client.chat.completions.create.return_value = make_completion(json.dumps(event_payload))

        result = await generator.generate(
            MESSAGES, Event, name="eventFromRawText.event",
            context=GenerationContext(user_id="user_1", input="Jazz tonight", prompt_version="v1"),
        )

        assert isinstance(result.object, Event)
        assert result.object.name == event_payload["name"]
        assert result.warnings == []
        assert result.finish_reason == "stop"
        assert result.model == "primary/model"
        assert result.raw_response == json.dumps(event_payload)

        kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "primary/model"
        assert kwargs["temperature"] == 0.2
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"] == MESSAGES

        trace = tracer.traces[-1]
        assert trace.name == "eventFromRawText.event"
        assert trace.generations[0].scores == {"eventToJson": 1, "cleanJson": 1}
        assert trace.metadata["finishReason"] == "stop"
        assert trace.metadata["warnings"] == []
        assert trace.output["startDate"] == "2024-05-14"

    @pytest.mark.asyncio
    async def test_fenced_json_is_sanitized(self, generator, mock_client, tracer, event_payload):
        raw = f"Here you go:\n```json\n{json.dumps(event_payload)}\n```"
        mock_client.chat.completions.create.return_value = make_completion(raw)

        result = await generator.generate(MESSAGES, Event, name="test.event")

        assert result.object.location == event_payload["location"]
        assert result.warnings == ["sanitized-json-fallback"]
        assert result.sanitized
        assert result.raw_response == raw
        assert tracer.traces[-1].generations[0].scores == {"eventToJson": 1, "cleanJson": 0}

    @pytest.mark.asyncio
    async def test_schema_mismatch_fails_without_fallback(self, generator, mock_client, tracer):
        mock_client.chat.completions.create.return_value = make_completion(json.dumps({"description": "no name"}))

        with pytest.raises(GenerationError) as exc_info:
            await generator.generate(MESSAGES, Event, name="test.event")

        assert exc_info.value.data["schema"] == "Event"
        assert mock_client.chat.completions.create.await_count == 1
        assert tracer.traces[-1].generations[0].scores == {"eventToJson": 0}
        assert "error" in tracer.traces[-1].metadata

    @pytest.mark.asyncio
    async def test_unrecoverable_text_keeps_original_error(self, generator, mock_client):
        mock_client.chat.completions.create.return_value = make_completion("I could not find an event.")

        with pytest.raises(GenerationError) as exc_info:
            await generator.generate(MESSAGES, Event, name="test.event")

        assert isinstance(exc_info.value.__cause__, json.JSONDecodeError)

    @pytest.mark.asyncio
    async def test_sanitized_but_invalid_keeps_original_error(self, generator, mock_client):
        mock_client.chat.completions.create.return_value = make_completion('Result: {"description": "x"}')

        with pytest.raises(GenerationError) as exc_info:
            await generator.generate(MESSAGES, Event, name="test.event")

        assert isinstance(exc_info.value.__cause__, json.JSONDecodeError)

    @pytest.mark.asyncio
    async def test_provider_error_falls_back(self, generator, mock_client, event_payload):
        mock_client.chat.completions.create.side_effect = [
            _connection_error(),
            make_completion(json.dumps(event_payload)),
        ]

        result = await generator.generate(MESSAGES, Event, name="test.event")

        assert result.model == "fallback/model"
        models = [call.kwargs["model"] for call in mock_client.chat.completions.create.call_args_list]
        assert models == ["primary/model", "fallback/model"]

    @pytest.mark.asyncio
    async def test_all_models_failing_raises_last_cause(self, generator, mock_client, tracer):
        last = _connection_error()
        mock_client.chat.completions.create.side_effect = [_connection_error(), last]

        with pytest.raises(GenerationError) as exc_info:
            await generator.generate(MESSAGES, Event, name="test.event")

        assert exc_info.value.__cause__ is last
        assert exc_info.value.data["models"] == ["primary/model", "fallback/model"]
        assert tracer.traces[-1].generations[0].scores == {"eventToJson": 0}

    @pytest.mark.asyncio
    async def test_unexpected_errors_are_wrapped(self, generator, mock_client):
        mock_client.chat.completions.create.side_effect = RuntimeError("socket closed")

        with pytest.raises(GenerationError) as exc_info:
            await generator.generate(MESSAGES, Event, name="test.event")

        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_empty_choices_fall_back(self, generator, mock_client, event_payload):
        empty = MagicMock()
        empty.choices = []
        mock_client.chat.completions.create.side_effect = [empty, make_completion(json.dumps(event_payload))]

        result = await generator.generate(MESSAGES, Event, name="test.event")
        assert result.model == "fallback/model"

    @pytest.mark.asyncio
    async def test_generation_records_answering_model(self, mock_client, event_payload):
        tracer = MagicMock()
        generation = tracer.trace.return_value.generation.return_value
        config = GenerationConfig(model="primary/model", fallback_models=["fallback/model"])
        mock_client.chat.completions.create.side_effect = [
            _connection_error(),
            make_completion(json.dumps(event_payload)),
        ]

        await StructuredGenerator(mock_client, tracer, config).generate(MESSAGES, Event, name="test.event")

        generation.update.assert_called_once_with(model="fallback/model")
        tracer.schedule_flush.assert_called_once()


def test_models_deduplicated(mock_client, tracer):
    config = GenerationConfig(model="a", fallback_models=["b", "a", "c"])
    assert StructuredGenerator(mock_client, tracer, config).models == ["a", "b", "c"]


def test_from_config_disables_retries(soonlist_config, tracer):
    generator = StructuredGenerator.from_config(soonlist_config, tracer)
    assert generator.client.max_retries == 0
    assert str(generator.client.base_url).startswith("https://openrouter.ai/api/v1")
    assert generator.config.temperature == 0.2


def test_create_messages():
    messages = StructuredGenerator.create_messages("system text", [{"type": "text", "text": "hi"}])
    assert messages[0] == {"role": "system", "content": "system text"}
    assert messages[1]["role"] == "user"
