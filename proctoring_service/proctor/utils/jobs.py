"""
Fire-and-forget job runner

Persistence calls from the detection loop are submitted here and never
awaited by the loop itself. Failures are logged, never raised.
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, Optional, Set

logger = logging.getLogger(__name__)


class JobRunner:
    """
    Runs submitted jobs without blocking the caller.

    - Coroutine functions become asyncio tasks on the running loop.
    - Plain callables run inline (they are expected to be quick and to
      manage their own I/O).
    """

    def __init__(self):
        self._pending: Set[asyncio.Task] = set()
        self.failed_count = 0

    def submit(self, fn: Callable[..., Any], *args, description: str = "job", **kwargs) -> Optional[asyncio.Task]:
        try:
            result = fn(*args, **kwargs)
        except Exception as e:
            self._record_failure(description, e)
            return None

        if not inspect.isawaitable(result):
            return None

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"[JOB] {description} dropped: no running event loop")
            if inspect.iscoroutine(result):
                result.close()
            return None

        task = asyncio.ensure_future(result, loop=loop)
        self._pending.add(task)
        task.add_done_callback(lambda t: self._on_done(t, description))
        return task

    def _on_done(self, task: asyncio.Task, description: str):
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self._record_failure(description, error)

    def _record_failure(self, description: str, error: BaseException):
        self.failed_count += 1
        logger.error(f"[JOB] {description} failed: {error}")

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self):
        """Wait for every submitted task to finish (used on shutdown and in tests)"""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
