"""
Core proctoring types shared by detectors, metrics, events and storage
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Sequence


class ViolationType(str, Enum):
    """Violation types that are persisted as ProctoringEvent rows"""
    NO_FACE = "no_face"
    MULTIPLE_FACES = "multiple_faces"
    LOOKING_AWAY = "looking_away"
    TAB_SWITCH = "tab_switch"


# Observation-only type: updates live metrics, never persisted
FACE_DETECTED = "face_detected"

VIOLATION_TYPES = frozenset(v.value for v in ViolationType)


def is_violation(event_type: str) -> bool:
    return event_type in VIOLATION_TYPES


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class RiskLevel(str, Enum):
    """Ordinal risk bucket derived from the integrity score"""
    VERY_LOW = "VERY_LOW"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class GazeDirection(str, Enum):
    CENTER = "center"
    LEFT = "left"
    RIGHT = "right"
    UP = "up"
    DOWN = "down"
    AWAY = "away"
    UNKNOWN = "unknown"


class SessionState(str, Enum):
    UNINITIALIZED = "UNINITIALIZED"
    ACTIVE = "ACTIVE"
    FINALIZED = "FINALIZED"


@dataclass
class FaceObservation:
    """
    One detected face as produced by a landmark provider.

    landmarks: normalized (x, y[, z]) points in the 478-point face mesh topology
    blendshapes: category name -> activation score (0-1)
    transformation_matrix: 16 floats, column-major 4x4, or None
    """
    landmarks: Sequence[Sequence[float]]
    blendshapes: Mapping[str, float] = field(default_factory=dict)
    transformation_matrix: Optional[Sequence[float]] = None


@dataclass
class HeadPose:
    pitch: float = 0.0
    yaw: float = 0.0
    roll: float = 0.0


@dataclass
class IrisGaze:
    direction: str = GazeDirection.UNKNOWN.value
    offset_x: float = 0.0
    offset_y: float = 0.0
    deviation: float = 0.0
    is_looking_away: bool = False


@dataclass
class FaceAnalysis:
    """Geometry analyzer output for a single face"""
    iris_gaze: IrisGaze
    head_pose: Optional[HeadPose]
    head_gaze: str
    is_blinking: bool


@dataclass
class ProctoringMetrics:
    """Latest per-tick snapshot, kept in memory for display and sampling"""
    face_detected: bool = False
    face_count: int = 0
    attention_score: float = 100.0
    gaze_direction: str = GazeDirection.CENTER.value
    head_pose: HeadPose = field(default_factory=HeadPose)
    face_distance: str = "optimal"
    lighting_quality: str = "good"
    iris_deviation: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """camelCase form used on the wire"""
        return {
            "faceDetected": self.face_detected,
            "faceCount": self.face_count,
            "attentionScore": self.attention_score,
            "gazeDirection": self.gaze_direction,
            "headPose": asdict(self.head_pose),
            "faceDistance": self.face_distance,
            "lightingQuality": self.lighting_quality,
            "irisDeviation": self.iris_deviation
        }


@dataclass
class ViolationCandidate:
    """A classified violation before debouncing"""
    type: str
    confidence: float
    severity: str
    message: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ProctoringEvent:
    """An emitted (debounced) violation event"""
    type: str
    timestamp: datetime
    confidence: float
    severity: str
    message: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "timestamp": self.timestamp.isoformat(),
            "confidence": self.confidence,
            "severity": self.severity,
            "message": self.message,
            "metadata": self.metadata
        }


@dataclass
class ProctoringStats:
    """Client-side running totals for the current session"""
    total_violations: int = 0
    no_face_detected_duration: float = 0.0
    multiple_faces_count: int = 0
    looking_away_count: int = 0
    tab_switch_count: int = 0
    average_attention_score: float = 100.0
    session_duration: float = 0.0


@dataclass
class PatternAnalysis:
    is_suspicious: bool
    confidence: float
    reason: str
    violations_by_question: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isSuspicious": self.is_suspicious,
            "confidence": self.confidence,
            "reason": self.reason,
            "violationsByQuestion": self.violations_by_question
        }
