"""Ownership of fire-and-forget tasks."""

import asyncio
import logging
from collections.abc import Coroutine
from dataclasses import dataclass, field
from typing import Any

_logger = logging.getLogger(__name__)


@dataclass
class BackgroundTasks:
    """Keeps strong references to detached tasks and logs their failures."""

    _tasks: set[asyncio.Task[Any]] = field(default_factory=set)

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task[Any]:
        """Schedule ``coro`` on the running loop and track it."""
        task = asyncio.create_task(coro, name=name)
        return self.adopt(task)

    def adopt(self, task: asyncio.Task[Any]) -> asyncio.Task[Any]:
        """Track an already running task until it finishes."""
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for tracked tasks, cancelling whatever outlives ``timeout``."""
        if not self._tasks:
            return
        tasks = list(self._tasks)
        _, still_running = await asyncio.wait(tasks, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            _logger.warning("Cancelled %s background task(s) on shutdown", len(still_running))
            await asyncio.gather(*still_running, return_exceptions=True)

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _logger.error(
                "Background task %s failed",
                task.get_name(),
                exc_info=(type(exc), exc, exc.__traceback__),
            )
