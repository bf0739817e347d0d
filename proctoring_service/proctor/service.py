"""
Proctoring Service - Session lifecycle: initialize, collect, finalize

States: UNINITIALIZED -> ACTIVE -> FINALIZED (terminal).

The service owns the per-session event buffers (through EventBatcher) and
computes the final integrity fields from what was actually persisted.
"""

import asyncio
import logging
from collections import Counter
from typing import Any, Dict, Optional

from ..config import settings
from .events.batcher import EventBatcher
from .exceptions import SessionFinalizedError, SessionNotFoundError
from .scoring.integrity_scorer import IntegrityScorer
from .scoring.pattern_detector import SuspiciousPatternDetector
from .scoring.risk_classifier import RiskClassifier
from .storage.models import ProctoringSession as SessionRecord
from .storage.repository import ProctoringRepository
from .types import ProctoringEvent, ProctoringMetrics, SessionState, ViolationType
from .utils.clock import AsyncioScheduler, Clock, Scheduler, SystemClock
from .utils.logging import log_interview_flagged, log_proctor_event, log_session_end, log_session_start

logger = logging.getLogger(__name__)


class ProctoringService:
    """
    Session Lifecycle Manager.

    Usage:
        service = ProctoringService(repository)
        session = service.initialize(interview_id)
        service.store_event(session.id, event, question_index=2)
        service.store_snapshot(session.id, 10, metrics)
        final = service.finalize(session.id)
    """

    def __init__(
        self,
        repository: ProctoringRepository,
        scheduler: Optional[Scheduler] = None,
        clock: Optional[Clock] = None,
        batch_size: Optional[int] = None,
        batch_timeout: Optional[float] = None,
        scorer: Optional[IntegrityScorer] = None,
        risk_classifier: Optional[RiskClassifier] = None,
        pattern_detector: Optional[SuspiciousPatternDetector] = None,
        offload_io: bool = False
    ):
        self.repository = repository
        self.clock = clock or SystemClock()
        self.scheduler = scheduler or AsyncioScheduler()
        self.batcher = EventBatcher(
            repository,
            self.scheduler,
            batch_size=batch_size or settings.PROCTOR_EVENT_BATCH_SIZE,
            batch_timeout=settings.PROCTOR_EVENT_BATCH_TIMEOUT_SECONDS if batch_timeout is None else batch_timeout,
            offload=offload_io
        )
        self.scorer = scorer or IntegrityScorer()
        self.risk_classifier = risk_classifier or RiskClassifier()
        self.pattern_detector = pattern_detector or SuspiciousPatternDetector(
            window_seconds=settings.PROCTOR_PATTERN_WINDOW_SECONDS,
            suspicious_ratio=settings.PROCTOR_PATTERN_THRESHOLD
        )

    # ============== Lifecycle ==============

    def initialize(self, interview_id: str) -> SessionRecord:
        """Create a session with zeroed counters. Raises InterviewNotFoundError."""
        session = self.repository.create_session(interview_id, self.clock.utcnow())
        return self._opened(session)

    def store_snapshot(self, session_id: str, seconds_elapsed: int, metrics: ProctoringMetrics):
        self._require_active(session_id)
        self.repository.add_snapshot(session_id, self.clock.utcnow(), seconds_elapsed, metrics)

    def store_event(self, session_id: str, event: ProctoringEvent, question_index: Optional[int] = None) -> bool:
        """
        Buffer a violation event for batched persistence.

        Returns:
            False if the event type is not a violation (ignored)
        """
        self._require_active(session_id)
        return self.batcher.add(session_id, event, question_index)

    def flush(self, session_id: str) -> int:
        """Write buffered events now"""
        return self.batcher.flush(session_id, trigger="manual")

    def finalize(self, session_id: str) -> SessionRecord:
        """
        Seal the session and compute its integrity fields.

        Re-finalizing recomputes from the persisted data but keeps the
        original end time and duration.
        """
        session = self.get_session(session_id)
        self.batcher.discard(session_id)
        return self._seal(session)

    def _seal(self, session: SessionRecord) -> SessionRecord:
        session_id = session.id
        scores = self.repository.attention_scores(session_id)
        average_attention = sum(scores) / len(scores) if scores else 100.0

        events = self.repository.list_events(session_id)
        counts = Counter(event.type for event in events)

        breakdown = self.scorer.compute_breakdown(counts)
        integrity_score = breakdown["integrity_score"]
        risk_level = self.risk_classifier.classify(integrity_score)

        questions = self.repository.question_timestamps(session.interview_id)
        patterns = self.pattern_detector.detect(events, questions)

        if session.ended_at is None:
            ended_at = self.clock.utcnow()
            duration = max(0, int((ended_at - session.started_at).total_seconds()))
        else:
            ended_at = session.ended_at
            duration = session.total_duration_seconds

        fields: Dict[str, Any] = {
            "ended_at": ended_at,
            "total_duration_seconds": duration,
            "average_attention_score": average_attention,
            "integrity_score": integrity_score,
            "risk_level": risk_level,
            "suspicious_patterns": patterns.to_dict(),
            "total_violations": len(events),
            "looking_away_count": counts.get(ViolationType.LOOKING_AWAY.value, 0),
            "multiple_faces_count": counts.get(ViolationType.MULTIPLE_FACES.value, 0),
            "no_face_detected_seconds": counts.get(ViolationType.NO_FACE.value, 0),
            "tab_switch_count": counts.get(ViolationType.TAB_SWITCH.value, 0)
        }

        flag = self.risk_classifier.should_flag(risk_level)
        updated = self.repository.save_finalized(session_id, fields, flag_interview=flag)

        log_session_end(session_id, integrity_score, risk_level.value, len(events))
        if flag:
            log_interview_flagged(session_id, session.interview_id, risk_level.value)

        return updated

    # ============== Async entry points (API) ==============
    # Database work runs in a worker thread; buffers and timers stay on the event loop.

    async def initialize_async(self, interview_id: str) -> SessionRecord:
        session = await asyncio.to_thread(self.repository.create_session, interview_id, self.clock.utcnow())
        return self._opened(session)

    async def store_snapshot_async(self, session_id: str, seconds_elapsed: int, metrics: ProctoringMetrics):
        await asyncio.to_thread(self.store_snapshot, session_id, seconds_elapsed, metrics)

    async def store_event_async(
        self,
        session_id: str,
        event: ProctoringEvent,
        question_index: Optional[int] = None
    ) -> bool:
        await asyncio.to_thread(self._require_active, session_id)
        return self.batcher.add(session_id, event, question_index)

    async def finalize_async(self, session_id: str) -> SessionRecord:
        session = await asyncio.to_thread(self.get_session, session_id)
        await self.batcher.flush_async(session_id, trigger="discard")
        self.batcher.drop(session_id)
        return await asyncio.to_thread(self._seal, session)

    async def get_status_async(self, session_id: str) -> Dict[str, Any]:
        session = await asyncio.to_thread(self.get_session, session_id)
        return self._status(session)

    async def shutdown(self) -> int:
        """Write every buffered event before the process exits"""
        written = 0
        for session_id in self.batcher.sessions:
            written += await self.batcher.flush_async(session_id, trigger="shutdown")
        await self.batcher.wait_writes()

        if written:
            logger.info(f"[PROCTOR] Flushed {written} buffered events on shutdown")
        return written

    # ============== Queries ==============

    def get_session(self, session_id: str) -> SessionRecord:
        session = self.repository.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def get_state(self, session_id: str) -> SessionState:
        session = self.repository.get_session(session_id)
        if session is None:
            return SessionState.UNINITIALIZED
        return SessionState.FINALIZED if session.is_finalized else SessionState.ACTIVE

    def get_status(self, session_id: str) -> Dict[str, Any]:
        """Session record plus lifecycle state and buffered event count"""
        return self._status(self.get_session(session_id))

    def _status(self, session: SessionRecord) -> Dict[str, Any]:
        return {
            "session": session.to_dict(),
            "state": (SessionState.FINALIZED if session.is_finalized else SessionState.ACTIVE).value,
            "pendingEvents": self.batcher.pending_count(session.id)
        }

    def get_timeline(self, session_id: str) -> Dict[str, Any]:
        """Snapshot series and persisted events for trend charts"""
        self.get_session(session_id)
        return {
            "snapshots": [s.to_dict() for s in self.repository.list_snapshots(session_id)],
            "events": [e.to_dict() for e in self.repository.list_events(session_id)]
        }

    def _opened(self, session: SessionRecord) -> SessionRecord:
        self.batcher.open(session.id)
        log_session_start(session.id, session.interview_id)
        return session

    def _require_active(self, session_id: str) -> SessionRecord:
        session = self.get_session(session_id)
        if session.is_finalized:
            log_proctor_event(session_id, "rejected_after_finalize", level="warning")
            raise SessionFinalizedError(session_id)
        return session
