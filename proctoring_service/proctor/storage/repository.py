"""
Proctoring Repository - SQLAlchemy persistence for sessions, snapshots and events
"""
import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.orm import sessionmaker

from ...db import session_scope
from ..exceptions import InterviewNotFoundError, SessionNotFoundError
from ..types import ProctoringMetrics, RiskLevel, Severity, ViolationType
from . import models

logger = logging.getLogger(__name__)


# Per-type session counter columns bumped by each flushed batch
COUNTER_COLUMNS = {
    ViolationType.LOOKING_AWAY.value: "looking_away_count",
    ViolationType.MULTIPLE_FACES.value: "multiple_faces_count",
    ViolationType.NO_FACE.value: "no_face_detected_seconds",
    ViolationType.TAB_SWITCH.value: "tab_switch_count"
}


def to_naive_utc(value: datetime) -> datetime:
    """Database timestamps are naive UTC"""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class ProctoringRepository:
    """
    Synchronous repository over a sessionmaker.

    Every public method runs in its own transaction.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    # ========================================================================
    # Interviews (external collaborator)
    # ========================================================================

    def get_interview(self, interview_id: str) -> Optional[models.Interview]:
        with session_scope(self.session_factory) as db:
            return db.get(models.Interview, interview_id)

    def create_interview(self, interview_id: Optional[str] = None) -> models.Interview:
        with session_scope(self.session_factory) as db:
            interview = models.Interview(id=interview_id) if interview_id else models.Interview()
            db.add(interview)
            db.flush()
            return interview

    def add_message(self, interview_id: str, role: str, content: str, timestamp: datetime) -> models.InterviewMessage:
        with session_scope(self.session_factory) as db:
            message = models.InterviewMessage(
                interview_id=interview_id,
                role=models.MessageRole(role),
                content=content,
                timestamp=to_naive_utc(timestamp)
            )
            db.add(message)
            db.flush()
            return message

    def question_timestamps(self, interview_id: str) -> List[datetime]:
        """Times the interviewer (AGENT) asked something, oldest first"""
        with session_scope(self.session_factory) as db:
            rows = db.execute(
                select(models.InterviewMessage.timestamp)
                .where(models.InterviewMessage.interview_id == interview_id)
                .where(models.InterviewMessage.role == models.MessageRole.AGENT)
                .order_by(models.InterviewMessage.timestamp)
            ).scalars().all()
            return list(rows)

    # ========================================================================
    # Sessions
    # ========================================================================

    def create_session(self, interview_id: str, started_at: datetime) -> models.ProctoringSession:
        with session_scope(self.session_factory) as db:
            if db.get(models.Interview, interview_id) is None:
                raise InterviewNotFoundError(interview_id)

            session = models.ProctoringSession(
                interview_id=interview_id,
                started_at=to_naive_utc(started_at),
                total_violations=0,
                no_face_detected_seconds=0,
                multiple_faces_count=0,
                looking_away_count=0,
                tab_switch_count=0,
                average_attention_score=100.0,
                integrity_score=100,
                risk_level=RiskLevel.VERY_LOW
            )
            db.add(session)
            db.flush()
            return session

    def get_session(self, session_id: str) -> Optional[models.ProctoringSession]:
        with session_scope(self.session_factory) as db:
            return db.get(models.ProctoringSession, session_id)

    def save_finalized(
        self,
        session_id: str,
        fields: Dict[str, Any],
        flag_interview: bool = False
    ) -> models.ProctoringSession:
        """Write the computed session fields, flagging the interview in the same transaction"""
        with session_scope(self.session_factory) as db:
            session = db.get(models.ProctoringSession, session_id)
            if session is None:
                raise SessionNotFoundError(session_id)

            for name, value in fields.items():
                setattr(session, name, value)

            if flag_interview:
                interview = db.get(models.Interview, session.interview_id)
                if interview is not None:
                    interview.status = models.InterviewStatus.FLAGGED

            db.flush()
            return session

    # ========================================================================
    # Snapshots
    # ========================================================================

    def add_snapshot(
        self,
        session_id: str,
        timestamp: datetime,
        seconds_elapsed: int,
        metrics: ProctoringMetrics
    ) -> models.AttentionSnapshot:
        with session_scope(self.session_factory) as db:
            snapshot = models.AttentionSnapshot(
                session_id=session_id,
                timestamp=to_naive_utc(timestamp),
                seconds_elapsed=int(seconds_elapsed),
                face_detected=metrics.face_detected,
                face_count=metrics.face_count,
                attention_score=float(metrics.attention_score),
                gaze_direction=metrics.gaze_direction,
                head_yaw=float(metrics.head_pose.yaw),
                head_pitch=float(metrics.head_pose.pitch),
                iris_deviation=float(metrics.iris_deviation)
            )
            db.add(snapshot)
            db.flush()
            return snapshot

    def attention_scores(self, session_id: str) -> List[float]:
        with session_scope(self.session_factory) as db:
            rows = db.execute(
                select(models.AttentionSnapshot.attention_score)
                .where(models.AttentionSnapshot.session_id == session_id)
            ).scalars().all()
            return list(rows)

    def list_snapshots(self, session_id: str) -> List[models.AttentionSnapshot]:
        with session_scope(self.session_factory) as db:
            rows = db.execute(
                select(models.AttentionSnapshot)
                .where(models.AttentionSnapshot.session_id == session_id)
                .order_by(models.AttentionSnapshot.seconds_elapsed)
            ).scalars().all()
            return list(rows)

    # ========================================================================
    # Events
    # ========================================================================

    def insert_event_batch(self, session_id: str, items: Sequence) -> int:
        """
        Insert buffered events and bump the session counters atomically.

        Args:
            items: BufferedEvent objects (event + question_index)

        Returns:
            Number of rows written
        """
        if not items:
            return 0

        counts = Counter(item.event.type for item in items)
        table = models.ProctoringSession

        values = {"total_violations": table.total_violations + len(items)}
        for violation_type, column in COUNTER_COLUMNS.items():
            if counts.get(violation_type):
                values[column] = getattr(table, column) + counts[violation_type]

        with session_scope(self.session_factory) as db:
            db.add_all([
                models.ProctoringEvent(
                    session_id=session_id,
                    type=item.event.type,
                    timestamp=to_naive_utc(item.event.timestamp),
                    confidence=float(item.event.confidence),
                    severity=Severity(item.event.severity),
                    message=item.event.message,
                    event_metadata=item.event.metadata or {},
                    question_index=item.question_index
                )
                for item in items
            ])

            result = db.execute(
                update(table).where(table.id == session_id).values(**values)
            )
            if result.rowcount == 0:
                raise SessionNotFoundError(session_id)

        return len(items)

    def list_events(self, session_id: str) -> List[models.ProctoringEvent]:
        with session_scope(self.session_factory) as db:
            rows = db.execute(
                select(models.ProctoringEvent)
                .where(models.ProctoringEvent.session_id == session_id)
                .order_by(models.ProctoringEvent.timestamp)
            ).scalars().all()
            return list(rows)

    def count_events(self, session_id: str) -> int:
        with session_scope(self.session_factory) as db:
            return db.execute(
                select(func.count(models.ProctoringEvent.id))
                .where(models.ProctoringEvent.session_id == session_id)
            ).scalar_one()
