"""
Gaze Tracker - Tracks eye gaze direction from iris landmarks

Works on the 478-point face mesh (468 face points + 10 iris points).
"""

import math
import logging
from typing import Optional, Sequence, Tuple

from ..types import GazeDirection, IrisGaze

logger = logging.getLogger(__name__)


class GazeTracker:
    """
    Tracks eye gaze by locating each iris center relative to its eye.

    For each eye the horizontal offset is (iris_x - eye_center_x) / eye_width
    and the vertical offset uses the upper and lower lid points. Offsets of
    both eyes are averaged.
    """

    # Left eye: outer corner, inner corner, iris center, upper lid, lower lid
    LEFT_EYE = (33, 133, 468, 159, 145)
    # Right eye: outer corner, inner corner, iris center, upper lid, lower lid
    RIGHT_EYE = (263, 362, 473, 386, 374)

    REQUIRED_LANDMARKS = 478

    HORIZONTAL_THRESHOLD = 0.15  # 15% of eye width
    VERTICAL_THRESHOLD = 0.20    # 20% of eye height

    def track(self, landmarks: Sequence[Sequence[float]]) -> IrisGaze:
        """
        Track gaze direction from face landmarks.

        Args:
            landmarks: normalized face mesh points including iris points

        Returns:
            IrisGaze with direction, averaged offsets, deviation and
            whether the candidate is looking away
        """
        if landmarks is None or len(landmarks) < self.REQUIRED_LANDMARKS:
            return IrisGaze()

        left = self._eye_offsets(landmarks, self.LEFT_EYE)
        right = self._eye_offsets(landmarks, self.RIGHT_EYE)
        if left is None or right is None:
            # Degenerate eye (collapsed landmarks)
            return IrisGaze()

        offset_x = (left[0] + right[0]) / 2
        offset_y = (left[1] + right[1]) / 2

        return self.classify(offset_x, offset_y)

    def classify(self, offset_x: float, offset_y: float) -> IrisGaze:
        """
        Classify averaged iris offsets.

        The camera image is mirrored: a positive horizontal offset means the
        candidate is looking to their left.
        """
        deviation = math.hypot(offset_x, offset_y)

        if abs(offset_x) < self.HORIZONTAL_THRESHOLD and abs(offset_y) < self.VERTICAL_THRESHOLD:
            direction = GazeDirection.CENTER.value
        elif abs(offset_x) > abs(offset_y):
            direction = GazeDirection.LEFT.value if offset_x > 0 else GazeDirection.RIGHT.value
        else:
            direction = GazeDirection.DOWN.value if offset_y > 0 else GazeDirection.UP.value

        is_looking_away = (
            deviation > self.HORIZONTAL_THRESHOLD
            or abs(offset_y) > self.VERTICAL_THRESHOLD
        )

        return IrisGaze(
            direction=direction,
            offset_x=offset_x,
            offset_y=offset_y,
            deviation=deviation,
            is_looking_away=is_looking_away
        )

    def _eye_offsets(self, landmarks: Sequence[Sequence[float]], indices: Tuple[int, ...]) -> Optional[Tuple[float, float]]:
        outer, inner, iris, top, bottom = (landmarks[i] for i in indices)

        eye_width = abs(outer[0] - inner[0])
        eye_height = abs(top[1] - bottom[1])
        if eye_width == 0 or eye_height == 0:
            return None

        eye_center_x = (outer[0] + inner[0]) / 2
        offset_x = (iris[0] - eye_center_x) / eye_width

        eye_center_y = (top[1] + bottom[1]) / 2
        offset_y = (iris[1] - eye_center_y) / eye_height

        return float(offset_x), float(offset_y)
