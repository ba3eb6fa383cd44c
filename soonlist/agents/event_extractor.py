"""Event extraction: one event generation and one metadata generation per input."""

import asyncio
from typing import Any, Dict, List, Optional

import structlog
from pydantic import BaseModel, ConfigDict

from soonlist.agents.base import GenerationContext, MessageContent, StructuredGenerator
from soonlist.errors import InternalServerError
from soonlist.models.event import Event, EventMetadata, EventWithMetadata, GeneratedObject
from soonlist.models.messages import ExtractionInput
from soonlist.prompts import Prompts, get_prompts, render_system_message

logger = structlog.get_logger(__name__)

DATA_URL_PREFIX = "data:image/webp;base64,"


def to_data_url(base64_image: str) -> str:
    """Return ``base64_image`` as a data URL, prefixing a bare payload."""
    if base64_image.startswith("data:"):
        return base64_image
    return f"{DATA_URL_PREFIX}{base64_image}"


def text_content(instructions: str, raw_text: str) -> str:
    return f'{instructions} Input: """\n{raw_text}\n"""'


def image_content(instructions: str, image_url: str) -> List[Dict[str, Any]]:
    return [
        {"type": "text", "text": instructions},
        {"type": "image_url", "image_url": {"url": image_url}},
    ]


class ExtractionResult(BaseModel):
    """Both generations of one extraction."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    event: GeneratedObject
    metadata: GeneratedObject

    @property
    def warnings(self) -> List[str]:
        return list(dict.fromkeys(self.event.warnings + self.metadata.warnings))

    def event_with_metadata(self) -> EventWithMetadata:
        event: Event = self.event.object
        return EventWithMetadata(**event.model_dump(), event_metadata=self.metadata.object)


class EventExtractor:
    """Turn raw text or an image into an event and its metadata."""

    def __init__(self, generator: StructuredGenerator):
        self.generator = generator
        self.logger = logger.bind(component="event_extractor")

    def _contents(self, prompts: Prompts, extraction_input: ExtractionInput) -> Optional[tuple]:
        prompt = prompts.prompt
        if extraction_input.raw_text:
            return (
                text_content(prompt.text, extraction_input.raw_text),
                text_content(prompt.text_metadata, extraction_input.raw_text),
            )

        image = extraction_input.image_url
        if not image and extraction_input.base64_image:
            image = to_data_url(extraction_input.base64_image)
        if image:
            return image_content(prompt.text, image), image_content(prompt.text_metadata, image)

        return None

    async def extract(
        self,
        extraction_input: ExtractionInput,
        fn_name: str,
        session_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> ExtractionResult:
        """Run the event and metadata generations concurrently.

        Args:
            extraction_input: Text or image plus the caller's timezone
            fn_name: Procedure name, used as the trace name prefix
            session_id: Session for trace grouping
            user_id: Caller for trace grouping

        Returns:
            ExtractionResult with both generated objects

        Raises:
            InternalServerError: If the input holds no text and no image
            GenerationError: If either generation fails
        """
        prompts = get_prompts(extraction_input.timezone)
        contents = self._contents(prompts, extraction_input)
        if contents is None:
            raise InternalServerError("No text or image provided", data={"operation": fn_name})
        event_content, metadata_content = contents

        logged_input = extraction_input.logged_input()
        event_messages = self._messages(
            render_system_message(prompts.system_prompt_event, Event), event_content
        )
        metadata_messages = self._messages(
            render_system_message(prompts.system_prompt_metadata, EventMetadata), metadata_content
        )

        event, metadata = await asyncio.gather(
            self.generator.generate(
                event_messages,
                Event,
                name=f"{fn_name}.event",
                context=GenerationContext(
                    session_id=session_id,
                    user_id=user_id,
                    input=logged_input,
                    prompt_version=prompts.prompt_version,
                    system_version=prompts.system_prompt_event.version,
                ),
            ),
            self.generator.generate(
                metadata_messages,
                EventMetadata,
                name=f"{fn_name}.metadata",
                context=GenerationContext(
                    session_id=session_id,
                    user_id=user_id,
                    input=logged_input,
                    prompt_version=prompts.prompt_version,
                    system_version=prompts.system_prompt_metadata.version,
                ),
            ),
        )

        self.logger.info("Event extracted", operation=fn_name, event_name=event.object.name)
        return ExtractionResult(event=event, metadata=metadata)

    def _messages(self, system_prompt: str, content: MessageContent):
        return self.generator.create_messages(system_prompt, content)
