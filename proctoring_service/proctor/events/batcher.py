"""
Event Batcher - Buffers violation events per session and writes them in batches

Flush triggers:
    - buffer reaches batch_size events (immediate)
    - batch_timeout seconds after the latest insertion (timer is reset on
      every insertion, at most one pending timer per session)

With offload=True, size and timer flushes write from a worker thread;
buffers and timers are only touched on the event loop.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from ..types import ProctoringEvent, is_violation
from ..utils.clock import Scheduler, TimerHandle
from ..utils.logging import log_batch_flushed, log_proctor_event

logger = logging.getLogger(__name__)


@dataclass
class BufferedEvent:
    event: ProctoringEvent
    question_index: Optional[int] = None


@dataclass
class SessionEventBuffer:
    """Pending events of one session plus its flush timer"""
    session_id: str
    events: List[BufferedEvent] = field(default_factory=list)
    timer: Optional[TimerHandle] = None
    flushed_batches: int = 0
    dropped_events: int = 0

    def cancel_timer(self):
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None

    def __len__(self) -> int:
        return len(self.events)


class EventBatcher:
    """
    Batching pipeline between the debouncer and the database.

    The repository must provide insert_event_batch(session_id, items), which
    writes the rows and increments the session counters in one transaction.
    """

    BATCH_SIZE = 5
    BATCH_TIMEOUT_SECONDS = 10.0

    def __init__(
        self,
        repository,
        scheduler: Scheduler,
        batch_size: Optional[int] = None,
        batch_timeout: Optional[float] = None,
        offload: bool = False
    ):
        self.repository = repository
        self.scheduler = scheduler
        self.batch_size = batch_size or self.BATCH_SIZE
        self.batch_timeout = self.BATCH_TIMEOUT_SECONDS if batch_timeout is None else batch_timeout
        self.offload = offload
        self._buffers: Dict[str, SessionEventBuffer] = {}
        self._writes: Dict[str, Set[asyncio.Future]] = {}

    def open(self, session_id: str) -> SessionEventBuffer:
        """Get or create the buffer of a session"""
        buffer = self._buffers.get(session_id)
        if buffer is None:
            buffer = SessionEventBuffer(session_id=session_id)
            self._buffers[session_id] = buffer
        return buffer

    def buffer_for(self, session_id: str) -> Optional[SessionEventBuffer]:
        return self._buffers.get(session_id)

    def add(self, session_id: str, event: ProctoringEvent, question_index: Optional[int] = None) -> bool:
        """
        Buffer a violation event.

        Returns False when the event type is not a violation (ignored).
        """
        if not is_violation(event.type):
            return False

        buffer = self.open(session_id)
        buffer.events.append(BufferedEvent(event=event, question_index=question_index))

        if len(buffer) >= self.batch_size:
            self._flush_due(session_id, "size")
        else:
            buffer.cancel_timer()
            buffer.timer = self.scheduler.call_later(
                self.batch_timeout, self._flush_due, session_id, "timeout"
            )

        return True

    def flush(self, session_id: str, trigger: str = "manual") -> int:
        """
        Persist every buffered event of the session.

        Never raises: a failed write is logged and the buffer is cleared
        anyway (under-reporting rather than duplicate rows).

        Returns:
            Number of events written
        """
        items = self._take(session_id)
        if not items:
            return 0
        return self._write(session_id, items, trigger)

    async def flush_async(self, session_id: str, trigger: str = "manual") -> int:
        """Wait for in-flight batches of the session, then write the rest off the event loop"""
        pending = self._writes.get(session_id)
        if pending:
            await asyncio.gather(*list(pending))

        items = self._take(session_id)
        if not items:
            return 0
        return await asyncio.to_thread(self._write, session_id, items, trigger)

    async def wait_writes(self):
        """Wait for every in-flight background batch"""
        pending = [task for tasks in self._writes.values() for task in tasks]
        if pending:
            await asyncio.gather(*pending)

    def discard(self, session_id: str) -> int:
        """Force-flush and drop the session buffer"""
        written = self.flush(session_id, trigger="discard")
        self.drop(session_id)
        return written

    def drop(self, session_id: str):
        """Forget the session buffer without writing it"""
        buffer = self._buffers.pop(session_id, None)
        if buffer is not None:
            buffer.cancel_timer()
        self._writes.pop(session_id, None)

    def pending_count(self, session_id: str) -> int:
        buffer = self._buffers.get(session_id)
        return len(buffer) if buffer else 0

    @property
    def sessions(self) -> List[str]:
        return list(self._buffers)

    # ============== Internals ==============

    def _flush_due(self, session_id: str, trigger: str):
        if not self.offload:
            self.flush(session_id, trigger)
            return

        items = self._take(session_id)
        if not items:
            return

        task = asyncio.ensure_future(asyncio.to_thread(self._write, session_id, items, trigger))
        pending = self._writes.setdefault(session_id, set())
        pending.add(task)
        task.add_done_callback(pending.discard)

    def _take(self, session_id: str) -> List[BufferedEvent]:
        buffer = self._buffers.get(session_id)
        if buffer is None:
            return []

        buffer.cancel_timer()
        items, buffer.events = buffer.events, []
        return items

    def _write(self, session_id: str, items: List[BufferedEvent], trigger: str) -> int:
        buffer = self._buffers.get(session_id)

        try:
            self.repository.insert_event_batch(session_id, items)
        except Exception as e:
            if buffer is not None:
                buffer.dropped_events += len(items)
            log_proctor_event(
                session_id,
                "batch_failed",
                {"count": len(items), "trigger": trigger, "error": e},
                level="error"
            )
            return 0

        if buffer is not None:
            buffer.flushed_batches += 1
        log_batch_flushed(session_id, len(items), trigger)
        return len(items)
