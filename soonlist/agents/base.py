"""Structured generation against an OpenAI-compatible chat completion API."""

import json
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar, Union

import openai
import structlog
from openai import AsyncOpenAI
from pydantic import BaseModel, ValidationError

from soonlist.errors import GenerationError, SoonlistError
from soonlist.models.config import GenerationConfig, SoonlistConfig
from soonlist.models.event import GeneratedObject
from soonlist.sanitizer import SANITIZED_WARNING, extract_json_from_text
from soonlist.trace_processor import Tracer

logger = structlog.get_logger(__name__)

T = TypeVar("T", bound=BaseModel)

Message = Dict[str, Any]
MessageContent = Union[str, List[Dict[str, Any]]]


class GenerationContext(BaseModel):
    """Who asked for a generation and with which prompt versions."""

    session_id: Optional[str] = None
    user_id: Optional[str] = None
    input: Optional[str] = None
    prompt_version: Optional[str] = None
    system_version: Optional[str] = None


class StructuredGenerator:
    """Generate schema-validated JSON objects from a language model.

    Every call is traced. Provider errors fall through to the configured
    fallback models in order; unusable output does not.
    """

    def __init__(self, client: AsyncOpenAI, tracer: Tracer, config: Optional[GenerationConfig] = None):
        """Initialize the generator.

        Args:
            client: OpenAI-compatible client, built with automatic retries disabled
            tracer: Tracer receiving one trace per call
            config: Models and sampling parameters
        """
        self.client = client
        self.tracer = tracer
        self.config = config or GenerationConfig()
        self.logger = logger.bind(component="structured_generator")

    @classmethod
    def from_config(cls, config: SoonlistConfig, tracer: Tracer) -> "StructuredGenerator":
        generation = config.get_generation_config()
        client = AsyncOpenAI(
            api_key=config.openrouter_api_key,
            base_url=config.openrouter_base_url,
            max_retries=generation.max_retries,
        )
        return cls(client, tracer, generation)

    @property
    def models(self) -> List[str]:
        models = [self.config.model]
        for model in self.config.fallback_models:
            if model not in models:
                models.append(model)
        return models

    @staticmethod
    def create_messages(system_prompt: str, content: MessageContent) -> List[Message]:
        """Create the system and user turns for a call."""
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": content},
        ]

    async def _complete(self, messages: List[Message]) -> Tuple[Any, str]:
        last_error: Optional[Exception] = None
        for model in self.models:
            try:
                completion = await self.client.chat.completions.create(
                    model=model,
                    messages=messages,
                    temperature=self.config.temperature,
                    response_format={"type": "json_object"},
                )
            except openai.APIError as e:
                last_error = e
                self.logger.warning("Model call failed", model=model, error=str(e))
                continue

            if not completion.choices:
                last_error = GenerationError("Model returned no choices", data={"model": model})
                self.logger.warning("Model returned no choices", model=model)
                continue
            return completion, model

        raise GenerationError(
            "All models failed",
            data={"models": self.models},
            cause=last_error,
        )

    @staticmethod
    def _parse(raw: str, schema: Type[T]) -> Tuple[T, List[str]]:
        """Parse and validate model output, recovering JSON wrapped in prose or fences."""
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            extracted = extract_json_from_text(raw)
            if extracted is None:
                raise GenerationError("Model output is not valid JSON", data={"schema": schema.__name__}, cause=e)
            try:
                return schema.model_validate(json.loads(extracted)), [SANITIZED_WARNING]
            except (json.JSONDecodeError, ValidationError):
                raise GenerationError(
                    "Model output is not valid JSON", data={"schema": schema.__name__}, cause=e
                ) from e

        try:
            return schema.model_validate(data), []
        except ValidationError as e:
            raise GenerationError(
                "Model output does not match schema",
                data={"schema": schema.__name__, "errorCount": e.error_count()},
                cause=e,
            )

    async def generate(
        self,
        messages: List[Message],
        schema: Type[T],
        *,
        name: str,
        context: Optional[GenerationContext] = None,
    ) -> GeneratedObject:
        """Generate one object matching ``schema``.

        Args:
            messages: Chat messages, system turn first
            schema: Pydantic model the output must validate against
            name: Trace name, e.g. ``eventFromRawText.event``
            context: Caller and prompt versions for the trace

        Returns:
            GeneratedObject holding the validated model instance

        Raises:
            GenerationError: If every model failed or the output is unusable
        """
        context = context or GenerationContext()
        trace = self.tracer.trace(
            name=name,
            session_id=context.session_id,
            user_id=context.user_id,
            input=context.input,
            version=context.prompt_version,
        )
        generation = trace.generation(
            name=name,
            input=context.input,
            model=self.config.model,
            version=context.system_version,
        )

        try:
            completion, model = await self._complete(messages)
            generation.update(model=model)
            choice = completion.choices[0]
            raw = choice.message.content or ""
            obj, warnings = self._parse(raw, schema)
        except Exception as e:
            generation.score(name="eventToJson", value=0)
            generation.end(output=None, level="ERROR", status_message=str(e))
            trace.update(metadata={"error": str(e), "errorType": type(e).__name__})
            self.tracer.schedule_flush()
            self.logger.error("Generation failed", name=name, error=str(e), **(context.model_dump(exclude={"input"})))
            if isinstance(e, SoonlistError):
                raise
            raise GenerationError("Generation failed", data={"name": name}, cause=e) from e

        output = obj.model_dump(by_alias=True, exclude_none=True, mode="json")
        generation.end(output=output)
        generation.score(name="eventToJson", value=1)
        generation.score(name="cleanJson", value=0 if SANITIZED_WARNING in warnings else 1)
        trace.update(
            output=output,
            metadata={
                "finishReason": choice.finish_reason,
                "rawResponse": raw,
                "warnings": warnings,
                "model": model,
            },
        )
        self.tracer.schedule_flush()

        self.logger.info(
            "Generation completed",
            name=name,
            model=model,
            finish_reason=choice.finish_reason,
            sanitized=bool(warnings),
        )
        return GeneratedObject(
            object=obj,
            raw_response=raw,
            finish_reason=choice.finish_reason,
            warnings=warnings,
            model=model,
        )
