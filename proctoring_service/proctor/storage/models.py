"""
Proctoring Models - Interviews, proctoring sessions, snapshots and violation events
"""
import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text
)
from sqlalchemy.orm import relationship

from ...db import Base
from ..types import RiskLevel, Severity


def _uuid() -> str:
    return str(uuid.uuid4())


def _iso(value):
    return value.isoformat() if value else None


class InterviewStatus(str, enum.Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    ABANDONED = "ABANDONED"
    FLAGGED = "FLAGGED"


class MessageRole(str, enum.Enum):
    USER = "USER"
    AGENT = "AGENT"


class Interview(Base):
    """Parent interview (owned by the interview service, status written on escalation)"""
    __tablename__ = 'interviews'

    id = Column(String(36), primary_key=True, default=_uuid)
    status = Column(Enum(InterviewStatus), default=InterviewStatus.IN_PROGRESS, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    messages = relationship('InterviewMessage', back_populates='interview', order_by='InterviewMessage.timestamp')
    proctoring_sessions = relationship('ProctoringSession', back_populates='interview')

    def to_dict(self):
        return {
            'id': self.id,
            'status': self.status.value if self.status else None,
            'createdAt': _iso(self.created_at)
        }


class InterviewMessage(Base):
    """Transcript line; AGENT messages mark when a question was asked"""
    __tablename__ = 'interview_messages'

    id = Column(String(36), primary_key=True, default=_uuid)
    interview_id = Column(String(36), ForeignKey('interviews.id'), nullable=False, index=True)
    role = Column(Enum(MessageRole), nullable=False)
    content = Column(Text, default="")
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)

    interview = relationship('Interview', back_populates='messages')


class ProctoringSession(Base):
    """One monitoring session per interview attempt"""
    __tablename__ = 'proctoring_sessions'

    id = Column(String(36), primary_key=True, default=_uuid)
    interview_id = Column(String(36), ForeignKey('interviews.id'), nullable=False, index=True)
    started_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    ended_at = Column(DateTime, nullable=True)
    total_duration_seconds = Column(Integer, nullable=True)

    # Counters (incremented by the batching pipeline)
    total_violations = Column(Integer, default=0, nullable=False)
    no_face_detected_seconds = Column(Integer, default=0, nullable=False)
    multiple_faces_count = Column(Integer, default=0, nullable=False)
    looking_away_count = Column(Integer, default=0, nullable=False)
    tab_switch_count = Column(Integer, default=0, nullable=False)

    # Computed at finalize
    average_attention_score = Column(Float, default=100.0, nullable=False)
    integrity_score = Column(Integer, default=100, nullable=False)
    risk_level = Column(Enum(RiskLevel), default=RiskLevel.VERY_LOW, nullable=False)
    suspicious_patterns = Column(JSON, nullable=True)

    interview = relationship('Interview', back_populates='proctoring_sessions')
    snapshots = relationship('AttentionSnapshot', back_populates='session', cascade='all, delete-orphan')
    events = relationship('ProctoringEvent', back_populates='session', cascade='all, delete-orphan')

    @property
    def is_finalized(self) -> bool:
        return self.ended_at is not None

    def to_dict(self):
        return {
            'id': self.id,
            'interviewId': self.interview_id,
            'startedAt': _iso(self.started_at),
            'endedAt': _iso(self.ended_at),
            'totalDurationSeconds': self.total_duration_seconds,
            'totalViolations': self.total_violations,
            'noFaceDetectedSeconds': self.no_face_detected_seconds,
            'multipleFacesCount': self.multiple_faces_count,
            'lookingAwayCount': self.looking_away_count,
            'tabSwitchCount': self.tab_switch_count,
            'averageAttentionScore': self.average_attention_score,
            'integrityScore': self.integrity_score,
            'riskLevel': self.risk_level.value if self.risk_level else None,
            'suspiciousPatterns': self.suspicious_patterns
        }


class AttentionSnapshot(Base):
    """Low-rate attention time series (one row per sampler tick)"""
    __tablename__ = 'attention_snapshots'

    id = Column(String(36), primary_key=True, default=_uuid)
    session_id = Column(String(36), ForeignKey('proctoring_sessions.id'), nullable=False, index=True)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)
    seconds_elapsed = Column(Integer, nullable=False)
    face_detected = Column(Boolean, nullable=False)
    face_count = Column(Integer, nullable=False)
    attention_score = Column(Float, nullable=False)
    gaze_direction = Column(String(20), nullable=False)
    head_yaw = Column(Float, default=0.0)
    head_pitch = Column(Float, default=0.0)
    iris_deviation = Column(Float, default=0.0)

    session = relationship('ProctoringSession', back_populates='snapshots')

    def to_dict(self):
        return {
            'id': self.id,
            'sessionId': self.session_id,
            'timestamp': _iso(self.timestamp),
            'secondsElapsed': self.seconds_elapsed,
            'faceDetected': self.face_detected,
            'faceCount': self.face_count,
            'attentionScore': self.attention_score,
            'gazeDirection': self.gaze_direction,
            'headYaw': self.head_yaw,
            'headPitch': self.head_pitch,
            'irisDeviation': self.iris_deviation
        }


class ProctoringEvent(Base):
    """Persisted violation (violation types only)"""
    __tablename__ = 'proctoring_events'

    id = Column(String(36), primary_key=True, default=_uuid)
    session_id = Column(String(36), ForeignKey('proctoring_sessions.id'), nullable=False, index=True)
    type = Column(String(32), nullable=False, index=True)
    timestamp = Column(DateTime, nullable=False)
    confidence = Column(Float, nullable=False)
    severity = Column(Enum(Severity), nullable=False)
    message = Column(Text, default="")
    # "metadata" is reserved on declarative classes
    event_metadata = Column('metadata', JSON, default=dict)
    question_index = Column(Integer, nullable=True)

    session = relationship('ProctoringSession', back_populates='events')

    def to_dict(self):
        return {
            'id': self.id,
            'sessionId': self.session_id,
            'type': self.type,
            'timestamp': _iso(self.timestamp),
            'confidence': self.confidence,
            'severity': self.severity.value if self.severity else None,
            'message': self.message,
            'metadata': self.event_metadata or {},
            'questionIndex': self.question_index
        }
