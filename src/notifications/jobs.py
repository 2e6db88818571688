"""In-process background jobs for side effects that must not hold up a response.

Jobs are plain coroutines scheduled on the running loop. The runner keeps a
reference to every task until it finishes (so none are garbage collected
mid-flight), logs the outcome, and can be drained at shutdown.
"""

import asyncio
from collections.abc import Coroutine
from typing import Any

import structlog

from shared.errors import error_message

logger = structlog.get_logger(__name__)


class BackgroundJobs:
    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, name: str, coroutine: Coroutine[Any, Any, Any], **context) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coroutine, name=name)
        self._tasks.add(task)
        task.add_done_callback(lambda finished: self._finished(finished, context))
        logger.debug("background_job_submitted", job=name, **context)
        return task

    def _finished(self, task: asyncio.Task, context: dict) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("background_job_cancelled", job=task.get_name(), **context)
            return
        exc = task.exception()
        if exc is not None:
            logger.error("background_job_failed", job=task.get_name(), error=error_message(exc), **context)
            return
        result = task.result()
        if hasattr(result, "to_dict"):
            result = result.to_dict()
        logger.info("background_job_completed", job=task.get_name(), result=result, **context)

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for outstanding jobs; jobs still running after ``timeout`` are cancelled."""
        if not self._tasks:
            return
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
