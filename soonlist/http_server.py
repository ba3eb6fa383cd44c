"""RPC-style HTTP API for the Soonlist capture service."""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
from fastapi import Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from soonlist.agents.base import StructuredGenerator
from soonlist.agents.event_extractor import EventExtractor
from soonlist.background import BackgroundTasks
from soonlist.clients import CDNClient, OneSignalClient, ReaderClient
from soonlist.database import DatabaseManager, EventRepository
from soonlist.errors import ErrorCode, SoonlistError
from soonlist.event_service import EventService
from soonlist.models.config import SoonlistConfig
from soonlist.models.messages import (
    CallerIdentity,
    CreateFromImageRequest,
    CreateFromRawTextRequest,
    CreateFromUrlRequest,
    ErrorBody,
    ErrorResponse,
    EventIdRequest,
    UpdateEventRequest,
)
from soonlist.notification_service import NotificationDispatcher
from soonlist.pipeline import EventPipeline
from soonlist.trace_processor import Tracer, create_tracer

logger = structlog.get_logger(__name__)


class AppServices:
    """Everything the routes need, built once per process."""

    def __init__(
        self,
        pipeline: EventPipeline,
        event_service: EventService,
        background: BackgroundTasks,
        tracer: Tracer,
        db_manager: Optional[DatabaseManager] = None,
        generator: Optional[StructuredGenerator] = None,
    ):
        self.pipeline = pipeline
        self.event_service = event_service
        self.background = background
        self.tracer = tracer
        self.db_manager = db_manager
        self.generator = generator

    @classmethod
    async def build(cls, config: SoonlistConfig) -> "AppServices":
        background = BackgroundTasks()
        tracer = create_tracer(config, background)

        db_manager = DatabaseManager(config)
        await db_manager.initialize()
        repository = EventRepository(db_manager)

        generator = StructuredGenerator.from_config(config, tracer)
        dispatcher = NotificationDispatcher(
            OneSignalClient.from_config(config),
            repository,
            background,
            app_url_scheme=config.app_url_scheme,
        )
        pipeline = EventPipeline(
            EventExtractor(generator),
            repository,
            dispatcher,
            ReaderClient.from_config(config),
            CDNClient.from_config(config),
            default_timezone=config.default_timezone,
        )
        return cls(
            pipeline=pipeline,
            event_service=EventService(repository, config.default_timezone),
            background=background,
            tracer=tracer,
            db_manager=db_manager,
            generator=generator,
        )

    async def close(self) -> None:
        await self.background.drain()
        try:
            await asyncio.to_thread(self.tracer.shutdown)
        except Exception as e:
            logger.warning("Tracer shutdown failed", error=str(e))
        if self.generator is not None:
            await self.generator.client.close()
        if self.db_manager is not None:
            await self.db_manager.cleanup()


def _error_response(code: ErrorCode, message: str, data: Any = None) -> JSONResponse:
    body = ErrorResponse(error=ErrorBody(code=code.value, message=message, data=data))
    return JSONResponse(status_code=code.http_status, content=body.model_dump())


def _validation_details(exc: RequestValidationError) -> List[Dict[str, Any]]:
    return [
        {"field": ".".join(str(part) for part in error["loc"] if part != "body"), "message": error["msg"]}
        for error in exc.errors()
    ]


def get_services(request: Request) -> AppServices:
    return request.app.state.services


def get_caller(
    user_id: Optional[str] = Header(None, alias="X-User-Id"),
    roles: Optional[str] = Header(None, alias="X-User-Roles"),
    session_id: Optional[str] = Header(None, alias="X-Session-Id"),
) -> CallerIdentity:
    """Caller identity as asserted by the upstream identity provider."""
    return CallerIdentity(
        user_id=user_id or None,
        session_id=session_id,
        roles=[role.strip() for role in (roles or "").split(",") if role.strip()],
    )


def create_app(services: Optional[AppServices] = None, config: Optional[SoonlistConfig] = None) -> FastAPI:
    """Create the FastAPI app.

    Args:
        services: Prebuilt services; when omitted they are built from
            ``config`` at startup and closed at shutdown
        config: Application configuration
    """

    @asynccontextmanager
    async def lifespan(app_instance: FastAPI):
        owned = services is None
        app_instance.state.services = services or await AppServices.build(config or SoonlistConfig())
        logger.info("Soonlist HTTP server started")
        yield
        logger.info("Soonlist HTTP server shutting down")
        if owned:
            await app_instance.state.services.close()

    app = FastAPI(
        title="Soonlist Capture API",
        description="Create calendar events from text, URLs and images",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(SoonlistError)
    async def soonlist_error_handler(request: Request, exc: SoonlistError):
        return _error_response(exc.code, exc.message, exc.data or None)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _error_response(ErrorCode.BAD_REQUEST, "Invalid request", {"fields": _validation_details(exc)})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error("Unhandled error", path=request.url.path, error=str(exc), error_type=type(exc).__name__)
        return _error_response(ErrorCode.INTERNAL_SERVER_ERROR, "Internal server error")

    @app.get("/health")
    async def health(request: Request):
        """Health check endpoint."""
        result: Dict[str, Any] = {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}
        db_manager = request.app.state.services.db_manager
        if db_manager is not None:
            database = await db_manager.health_check()
            result["database"] = database
            if database["overall"] != "healthy":
                result["status"] = "degraded"
        return result

    @app.post("/rpc/ai.eventFromRawTextThenCreateThenNotification")
    async def event_from_raw_text(
        body: CreateFromRawTextRequest,
        services: AppServices = Depends(get_services),
        session_id: Optional[str] = Header(None, alias="X-Session-Id"),
    ):
        response = await services.pipeline.create_from_raw_text(body, session_id=session_id)
        return response.model_dump(by_alias=True, mode="json")

    @app.post("/rpc/ai.eventFromUrlThenCreateThenNotification")
    async def event_from_url(
        body: CreateFromUrlRequest,
        services: AppServices = Depends(get_services),
        session_id: Optional[str] = Header(None, alias="X-Session-Id"),
    ):
        response = await services.pipeline.create_from_url(body, session_id=session_id)
        return response.model_dump(by_alias=True, mode="json")

    @app.post("/rpc/ai.eventFromImageThenCreateThenNotification")
    async def event_from_image(
        body: CreateFromImageRequest,
        services: AppServices = Depends(get_services),
        session_id: Optional[str] = Header(None, alias="X-Session-Id"),
    ):
        response = await services.pipeline.create_from_image(body, session_id=session_id)
        return response.model_dump(by_alias=True, mode="json")

    @app.post("/rpc/event.update")
    async def update_event(
        body: UpdateEventRequest,
        services: AppServices = Depends(get_services),
        caller: CallerIdentity = Depends(get_caller),
    ):
        event = await services.event_service.update(caller, body)
        return {"id": event.id, "event": event.model_dump(by_alias=True, mode="json")}

    @app.post("/rpc/event.delete")
    async def delete_event(
        body: EventIdRequest,
        services: AppServices = Depends(get_services),
        caller: CallerIdentity = Depends(get_caller),
    ):
        event_id = await services.event_service.delete(caller, body.id)
        return {"id": event_id}

    @app.post("/rpc/event.get")
    async def get_event(body: EventIdRequest, services: AppServices = Depends(get_services)):
        event = await services.event_service.get(body.id)
        return event.model_dump(by_alias=True, mode="json")

    return app


app = create_app()
