"""Trace processors for language model generations.

Every structured generation is recorded as a trace holding one generation
span. ``LangfuseTracer`` ships traces to Langfuse; ``LoggingTracer`` writes
the same lifecycle to the structured log when no Langfuse keys are set.
"""

import asyncio
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog
from langfuse import Langfuse

from soonlist.background import BackgroundTasks
from soonlist.models.config import SoonlistConfig

logger = structlog.get_logger(__name__)


class GenerationHandle(ABC):
    """A single model call inside a trace."""

    @abstractmethod
    def update(self, **kwargs: Any) -> None:
        ...

    @abstractmethod
    def end(self, output: Any = None, **kwargs: Any) -> None:
        ...

    @abstractmethod
    def score(self, name: str, value: float, comment: Optional[str] = None) -> None:
        ...


class TraceHandle(ABC):
    """One logical operation, such as ``eventFromRawText.event``."""

    @abstractmethod
    def generation(
        self,
        name: str,
        input: Any = None,
        model: Optional[str] = None,
        version: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> GenerationHandle:
        ...

    @abstractmethod
    def update(self, output: Any = None, metadata: Optional[Dict[str, Any]] = None) -> None:
        ...


class Tracer(ABC):
    """Tracing backend, built once at startup and shared by all generators."""

    def __init__(self, background: Optional[BackgroundTasks] = None):
        self.background = background
        self.logger = logger.bind(component=type(self).__name__)

    @abstractmethod
    def trace(
        self,
        name: str,
        session_id: Optional[str] = None,
        user_id: Optional[str] = None,
        input: Any = None,
        version: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> TraceHandle:
        ...

    def flush(self) -> None:
        """Push buffered traces to the backend. Blocking."""

    def shutdown(self) -> None:
        """Flush and release backend resources."""

    async def _flush_async(self) -> None:
        try:
            await asyncio.to_thread(self.flush)
        except Exception as e:
            self.logger.warning("Trace flush failed", error=str(e))

    def schedule_flush(self) -> None:
        """Flush without blocking the caller."""
        if self.background is None:
            return
        self.background.schedule(self._flush_async(), name="trace-flush")


class _LangfuseGeneration(GenerationHandle):
    def __init__(self, generation):
        self._generation = generation

    def update(self, **kwargs: Any) -> None:
        self._generation.update(**kwargs)

    def end(self, output: Any = None, **kwargs: Any) -> None:
        self._generation.end(output=output, **kwargs)

    def score(self, name: str, value: float, comment: Optional[str] = None) -> None:
        self._generation.score(name=name, value=value, comment=comment)


class _LangfuseTrace(TraceHandle):
    def __init__(self, trace):
        self._trace = trace

    def generation(self, name, input=None, model=None, version=None, metadata=None) -> GenerationHandle:
        return _LangfuseGeneration(
            self._trace.generation(
                name=name,
                input=input,
                model=model,
                version=version,
                metadata=metadata,
                start_time=datetime.now(timezone.utc),
            )
        )

    def update(self, output: Any = None, metadata: Optional[Dict[str, Any]] = None) -> None:
        self._trace.update(output=output, metadata=metadata)


class LangfuseTracer(Tracer):
    """Tracer backed by the Langfuse SDK."""

    def __init__(self, client: Langfuse, background: Optional[BackgroundTasks] = None):
        super().__init__(background)
        self.client = client

    @classmethod
    def from_config(cls, config: SoonlistConfig, background: Optional[BackgroundTasks] = None) -> "LangfuseTracer":
        client = Langfuse(
            public_key=config.langfuse_public_key,
            secret_key=config.langfuse_secret_key,
            host=config.langfuse_base_url,
        )
        return cls(client, background)

    def trace(self, name, session_id=None, user_id=None, input=None, version=None, metadata=None) -> TraceHandle:
        return _LangfuseTrace(
            self.client.trace(
                name=name,
                session_id=session_id,
                user_id=user_id,
                input=input,
                version=version,
                metadata=metadata,
            )
        )

    def flush(self) -> None:
        self.client.flush()

    def shutdown(self) -> None:
        self.client.shutdown()
        self.logger.info("Langfuse tracer shut down")


class _LoggedGeneration(GenerationHandle):
    def __init__(self, log, name: str):
        self._log = log.bind(generation=name)
        self.scores: Dict[str, float] = {}
        self.output: Any = None

    def update(self, **kwargs: Any) -> None:
        self._log.debug("Generation updated", **{k: str(v) for k, v in kwargs.items()})

    def end(self, output: Any = None, **kwargs: Any) -> None:
        self.output = output
        self._log.debug("Generation ended", has_output=output is not None)

    def score(self, name: str, value: float, comment: Optional[str] = None) -> None:
        self.scores[name] = value
        self._log.info("Generation scored", score_name=name, value=value)


class _LoggedTrace(TraceHandle):
    def __init__(self, log, name: str):
        self.trace_id = uuid.uuid4().hex
        self.name = name
        self._log = log.bind(trace=name, trace_id=self.trace_id)
        self.generations: list = []
        self.output: Any = None
        self.metadata: Dict[str, Any] = {}

    def generation(self, name, input=None, model=None, version=None, metadata=None) -> GenerationHandle:
        self._log.debug("Generation started", generation=name, model=model, version=version)
        handle = _LoggedGeneration(self._log, name)
        self.generations.append(handle)
        return handle

    def update(self, output: Any = None, metadata: Optional[Dict[str, Any]] = None) -> None:
        if output is not None:
            self.output = output
        if metadata:
            self.metadata.update(metadata)
        self._log.info("Trace updated", **{k: v for k, v in (metadata or {}).items() if k != "rawResponse"})


class LoggingTracer(Tracer):
    """Tracer that records the trace lifecycle in the structured log only."""

    def __init__(self, background: Optional[BackgroundTasks] = None):
        super().__init__(background)
        self.traces: list = []

    def trace(self, name, session_id=None, user_id=None, input=None, version=None, metadata=None) -> TraceHandle:
        handle = _LoggedTrace(self.logger, name)
        self.logger.debug(
            "Trace started",
            trace=name,
            trace_id=handle.trace_id,
            session_id=session_id,
            user_id=user_id,
            version=version,
        )
        self.traces.append(handle)
        # Only the most recent traces are kept for inspection.
        del self.traces[:-100]
        return handle


def create_tracer(config: SoonlistConfig, background: Optional[BackgroundTasks] = None) -> Tracer:
    if config.langfuse_enabled:
        return LangfuseTracer.from_config(config, background)
    logger.info("Langfuse keys not configured, tracing to log only")
    return LoggingTracer(background)
