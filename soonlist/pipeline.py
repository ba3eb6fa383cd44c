"""Capture pipelines: input -> extraction -> event row -> notification."""

import asyncio
from typing import Awaitable, Optional

import structlog

from soonlist.agents.event_extractor import EventExtractor
from soonlist.clients.cdn import CDNClient
from soonlist.clients.reader import ReaderClient
from soonlist.database.repositories import EventRepository
from soonlist.errors import InternalServerError, SoonlistError
from soonlist.materializer import materialize_event
from soonlist.models.config import DEFAULT_TIMEZONE
from soonlist.models.messages import (
    CaptureMethod,
    CreateEventRequest,
    CreateEventResponse,
    CreateFromImageRequest,
    CreateFromRawTextRequest,
    CreateFromUrlRequest,
    ExtractionInput,
)
from soonlist.notification_service import NotificationDispatcher

logger = structlog.get_logger(__name__)

RAW_TEXT_OPERATION = "eventFromRawTextThenCreateThenNotification"
URL_OPERATION = "eventFromUrlThenCreateThenNotification"
IMAGE_OPERATION = "eventFromImageThenCreateThenNotification"


class EventPipeline:
    """Create events from raw text, a URL or an image."""

    def __init__(
        self,
        extractor: EventExtractor,
        repository: EventRepository,
        dispatcher: NotificationDispatcher,
        reader: ReaderClient,
        cdn: CDNClient,
        default_timezone: str = DEFAULT_TIMEZONE,
    ):
        self.extractor = extractor
        self.repository = repository
        self.dispatcher = dispatcher
        self.reader = reader
        self.cdn = cdn
        self.default_timezone = default_timezone
        self.logger = logger.bind(component="event_pipeline")

    async def create_from_raw_text(
        self, request: CreateFromRawTextRequest, session_id: Optional[str] = None
    ) -> CreateEventResponse:
        return await self._run(
            request,
            RAW_TEXT_OPERATION,
            "rawText",
            session_id,
            lambda: self._create(
                request,
                ExtractionInput(timezone=request.timezone, raw_text=request.raw_text),
                RAW_TEXT_OPERATION,
                "rawText",
                session_id,
            ),
        )

    async def create_from_url(
        self, request: CreateFromUrlRequest, session_id: Optional[str] = None
    ) -> CreateEventResponse:
        async def run() -> CreateEventResponse:
            text = await self.reader.fetch_text(request.url)
            return await self._create(
                request,
                ExtractionInput(timezone=request.timezone, raw_text=text, source_url=request.url),
                URL_OPERATION,
                "url",
                session_id,
            )

        return await self._run(request, URL_OPERATION, "url", session_id, run)

    async def create_from_image(
        self, request: CreateFromImageRequest, session_id: Optional[str] = None
    ) -> CreateEventResponse:
        async def run() -> CreateEventResponse:
            if request.image_url:
                extraction_input = ExtractionInput(timezone=request.timezone, image_url=request.image_url)
                upload = None
            else:
                extraction_input = ExtractionInput(timezone=request.timezone, base64_image=request.base64_image)
                upload = self.cdn.upload_base64_image(request.base64_image)

            return await self._create(
                request, extraction_input, IMAGE_OPERATION, "image", session_id, upload=upload
            )

        return await self._run(request, IMAGE_OPERATION, "image", session_id, run)

    async def _run(self, request: CreateEventRequest, operation: str, method: CaptureMethod, session_id, run):
        """Validate the caller, run the capture and log failures with context."""
        if not request.user_id or not request.username:
            raise InternalServerError(
                "userId and username are required",
                data={"operation": operation},
            )

        try:
            return await run()
        except SoonlistError as e:
            self.logger.error(
                "Event capture failed",
                operation=operation,
                method=method,
                user_id=request.user_id,
                session_id=session_id,
                code=e.code.value,
                error=e.message,
                cause=str(e.cause) if e.cause else None,
            )
            raise
        except Exception as e:
            self.logger.error(
                "Event capture failed unexpectedly",
                operation=operation,
                method=method,
                user_id=request.user_id,
                session_id=session_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise InternalServerError(
                "Failed to create event",
                data={"operation": operation, "userId": request.user_id},
                cause=e,
            ) from e

    async def _create(
        self,
        request: CreateEventRequest,
        extraction_input: ExtractionInput,
        operation: str,
        method: CaptureMethod,
        session_id: Optional[str],
        upload: Optional[Awaitable[Optional[str]]] = None,
    ) -> CreateEventResponse:
        upload_task = asyncio.ensure_future(upload) if upload is not None else None
        try:
            extraction = await self.extractor.extract(
                extraction_input,
                operation,
                session_id=session_id,
                user_id=request.user_id,
            )
        except BaseException:
            if upload_task is not None:
                upload_task.cancel()
            raise
        uploaded_url = await upload_task if upload_task is not None else None

        generated = extraction.event_with_metadata()
        new_event = materialize_event(
            generated,
            user_id=request.user_id,
            username=request.username,
            image_url=uploaded_url or extraction_input.image_url,
            visibility=request.visibility,
            default_timezone=self.default_timezone,
        )

        event = await self.repository.create_with_relations(
            new_event,
            comment=request.comment,
            list_ids=[selection.value for selection in request.lists],
        )

        self.logger.info(
            "Event captured",
            operation=operation,
            method=method,
            event_id=new_event.id,
            user_id=request.user_id,
            warnings=extraction.warnings,
        )

        if request.send_notification is not False:
            self.dispatcher.dispatch_event_created(
                user_id=request.user_id,
                event_id=new_event.id,
                event_name=generated.name,
                timezone_name=request.timezone,
                source=f"ai.{operation}",
                method=method,
            )

        return CreateEventResponse(success=True, event_id=new_event.id, event=event)
