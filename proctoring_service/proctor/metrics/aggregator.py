"""
Metrics Aggregator - Combines face count and geometry into live proctoring metrics
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from ..detectors.face_analyzer import FaceAnalyzer
from ..types import FaceAnalysis, FaceObservation, GazeDirection, HeadPose, ProctoringMetrics
from ..utils.clock import Clock, SystemClock
from ..utils.frame_quality import estimate_face_distance, estimate_lighting_quality

logger = logging.getLogger(__name__)


@dataclass
class AggregatedFrame:
    """Result of one detection tick, consumed by the violation classifier"""
    metrics: ProctoringMetrics
    seconds_since_face: float = 0.0
    analysis: Optional[FaceAnalysis] = None
    looking_away: bool = False
    looking_away_confidence: float = 0.0
    looking_away_direction: str = GazeDirection.CENTER.value


class MetricsAggregator:
    """
    Turns the faces found in one frame into ProctoringMetrics.

    - 0 faces: attention decays by 5 points per second since a face was last seen
    - >1 faces: attention stays at 100, gaze is not analyzed
    - 1 face: iris and head gaze decide looking-away (70) unless blinking
    """

    ATTENTION_FULL = 100.0
    ATTENTION_LOOKING_AWAY = 70.0
    ATTENTION_DECAY_PER_SECOND = 5.0

    CONFIDENCE_BOTH_SIGNALS = 0.95
    CONFIDENCE_SINGLE_SIGNAL = 0.75

    def __init__(self, clock: Optional[Clock] = None, analyzer: Optional[FaceAnalyzer] = None):
        self.clock = clock or SystemClock()
        self.analyzer = analyzer or FaceAnalyzer()
        self.last_face_at = self.clock.monotonic()
        self.latest = ProctoringMetrics()

    def reset(self):
        """Start a new session: the no-face timer counts from now"""
        self.last_face_at = self.clock.monotonic()
        self.latest = ProctoringMetrics()

    def seconds_since_face(self) -> float:
        return max(0.0, self.clock.monotonic() - self.last_face_at)

    def update(self, faces: List[FaceObservation], frame: Optional[np.ndarray] = None) -> AggregatedFrame:
        """
        Aggregate one frame.

        State (last face time, latest metrics) is only committed after every
        computation succeeded, so a failing frame leaves it untouched.
        """
        faces = faces or []
        now = self.clock.monotonic()
        face_count = len(faces)
        lighting = estimate_lighting_quality(frame)

        if face_count == 0:
            seconds = max(0.0, now - self.last_face_at)
            result = AggregatedFrame(
                metrics=ProctoringMetrics(
                    face_detected=False,
                    face_count=0,
                    attention_score=max(0.0, self.ATTENTION_FULL - self.ATTENTION_DECAY_PER_SECOND * seconds),
                    gaze_direction=GazeDirection.UNKNOWN.value,
                    face_distance="unknown",
                    lighting_quality=lighting
                ),
                seconds_since_face=seconds
            )
            self.latest = result.metrics
            return result

        if face_count > 1:
            # Face-count violation takes priority over gaze
            result = AggregatedFrame(
                metrics=ProctoringMetrics(
                    face_detected=True,
                    face_count=face_count,
                    attention_score=self.ATTENTION_FULL,
                    face_distance=estimate_face_distance(faces[0].landmarks),
                    lighting_quality=lighting
                )
            )
        else:
            result = self._single_face(faces[0], lighting)

        self.last_face_at = now
        self.latest = result.metrics
        return result

    def _single_face(self, face: FaceObservation, lighting: str) -> AggregatedFrame:
        analysis = self.analyzer.analyze(face)
        iris = analysis.iris_gaze
        head_away = analysis.head_gaze != GazeDirection.CENTER.value

        looking_away = (iris.is_looking_away or head_away) and not analysis.is_blinking

        confidence = 0.0
        direction = iris.direction
        if looking_away:
            both = iris.is_looking_away and head_away
            confidence = self.CONFIDENCE_BOTH_SIGNALS if both else self.CONFIDENCE_SINGLE_SIGNAL
            direction = iris.direction if iris.is_looking_away else analysis.head_gaze

        metrics = ProctoringMetrics(
            face_detected=True,
            face_count=1,
            attention_score=self.ATTENTION_LOOKING_AWAY if looking_away else self.ATTENTION_FULL,
            gaze_direction=iris.direction,
            head_pose=analysis.head_pose or HeadPose(),
            face_distance=estimate_face_distance(face.landmarks),
            lighting_quality=lighting,
            iris_deviation=iris.deviation
        )

        return AggregatedFrame(
            metrics=metrics,
            analysis=analysis,
            looking_away=looking_away,
            looking_away_confidence=confidence,
            looking_away_direction=direction
        )
