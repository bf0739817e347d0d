"""
Face Analyzer - Turns one face observation into gaze, head pose and blink state
"""

import logging
from typing import List, Optional

from .blink_detector import BlinkDetector
from .gaze_tracker import GazeTracker
from .head_pose import HeadPoseEstimator
from ..types import FaceAnalysis, FaceObservation

logger = logging.getLogger(__name__)


class FaceAnalyzer:
    """
    Geometry analyzer: pure function of the provider output.

    Holds no per-session state except the blink counters used for metrics.
    """

    def __init__(
        self,
        head_pose: Optional[HeadPoseEstimator] = None,
        gaze_tracker: Optional[GazeTracker] = None,
        blink_detector: Optional[BlinkDetector] = None
    ):
        self.head_pose = head_pose or HeadPoseEstimator()
        self.gaze_tracker = gaze_tracker or GazeTracker()
        self.blink_detector = blink_detector or BlinkDetector()

    def analyze(self, face: FaceObservation) -> FaceAnalysis:
        iris_gaze = self.gaze_tracker.track(face.landmarks)
        pose = self.head_pose.estimate(face.transformation_matrix)

        return FaceAnalysis(
            iris_gaze=iris_gaze,
            head_pose=pose,
            head_gaze=self.head_pose.classify_gaze(pose),
            is_blinking=self.blink_detector.detect(face.blendshapes)
        )

    def analyze_all(self, faces: List[FaceObservation]) -> List[FaceAnalysis]:
        """Analyze every face in a frame (empty input gives an empty result)"""
        return [self.analyze(face) for face in faces or []]
