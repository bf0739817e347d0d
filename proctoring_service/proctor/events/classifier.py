"""
Violation Classifier - Maps per-tick metrics to violation candidates
"""

import logging
from typing import List, Optional

from ..metrics.aggregator import AggregatedFrame
from ..types import Severity, ViolationCandidate, ViolationType

logger = logging.getLogger(__name__)


class ViolationClassifier:
    """
    Produces violation candidates from an aggregated frame.

    no_face        HIGH    no face for longer than the grace period
    multiple_faces HIGH    more than one face in frame
    looking_away   MEDIUM  iris / head gaze decision from the aggregator
    tab_switch     MEDIUM  raised from page-visibility signals, not frames
    """

    NO_FACE_GRACE_SECONDS = 2.0

    def __init__(self, no_face_grace_seconds: Optional[float] = None):
        self.no_face_grace_seconds = (
            self.NO_FACE_GRACE_SECONDS if no_face_grace_seconds is None else no_face_grace_seconds
        )

    def classify(self, frame: AggregatedFrame, seconds_since_face: Optional[float] = None) -> List[ViolationCandidate]:
        if seconds_since_face is None:
            seconds_since_face = frame.seconds_since_face

        metrics = frame.metrics
        candidates = []

        if metrics.face_count == 0:
            if seconds_since_face > self.no_face_grace_seconds:
                candidates.append(ViolationCandidate(
                    type=ViolationType.NO_FACE.value,
                    confidence=1.0,
                    severity=Severity.HIGH.value,
                    message="No face detected",
                    metadata={"secondsSinceFace": round(seconds_since_face, 1)}
                ))
        elif metrics.face_count > 1:
            candidates.append(ViolationCandidate(
                type=ViolationType.MULTIPLE_FACES.value,
                confidence=1.0,
                severity=Severity.HIGH.value,
                message=f"{metrics.face_count} faces",
                metadata={"faceCount": metrics.face_count}
            ))
        elif frame.looking_away:
            candidates.append(ViolationCandidate(
                type=ViolationType.LOOKING_AWAY.value,
                confidence=frame.looking_away_confidence,
                severity=Severity.MEDIUM.value,
                message=f"Eyes looking {frame.looking_away_direction} (iris tracking)",
                metadata={
                    "irisDeviation": round(metrics.iris_deviation, 2),
                    "headYaw": round(metrics.head_pose.yaw, 1),
                    "headPitch": round(metrics.head_pose.pitch, 1)
                }
            ))

        return candidates

    def tab_switch(self) -> ViolationCandidate:
        return ViolationCandidate(
            type=ViolationType.TAB_SWITCH.value,
            confidence=1.0,
            severity=Severity.MEDIUM.value,
            message="Switched away from the interview tab"
        )
