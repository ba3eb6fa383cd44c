"""Detached background work that must not block request handling."""

import asyncio
from typing import Any, Coroutine, Optional, Set

import structlog

logger = structlog.get_logger(__name__)


class BackgroundTasks:
    """Fire-and-forget task scheduler.

    Holds a strong reference to each task until it finishes so the event
    loop cannot garbage-collect it mid-flight. Failures are logged and
    discarded; they never reach the code that scheduled the work.
    """

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()
        self.logger = logger.bind(component="background_tasks")

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(self, coro: Coroutine[Any, Any, Any], name: Optional[str] = None) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            self.logger.debug("Background task cancelled", task_name=task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            self.logger.error(
                "Background task failed",
                task_name=task.get_name(),
                error=str(exc),
                error_type=type(exc).__name__,
            )

    async def drain(self, timeout: float = 10.0) -> None:
        """Wait for pending tasks, cancelling whatever is left after ``timeout``."""
        if not self._tasks:
            return

        tasks = list(self._tasks)
        self.logger.info("Draining background tasks", count=len(tasks))
        _, not_done = await asyncio.wait(tasks, timeout=timeout)
        for task in not_done:
            task.cancel()
        if not_done:
            await asyncio.gather(*not_done, return_exceptions=True)
            self.logger.warning("Cancelled background tasks at shutdown", count=len(not_done))
