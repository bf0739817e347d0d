"""
Head Pose Estimator - Estimates head orientation from the facial transformation matrix

The landmark provider returns a 4x4 transformation matrix per face
(16 floats, column-major). Its upper-left 3x3 block is the head rotation.
"""

import numpy as np
import math
import logging
from typing import Optional, Sequence, Tuple

from ..types import GazeDirection, HeadPose

logger = logging.getLogger(__name__)


class HeadPoseEstimator:
    """
    Estimates head pose (pitch, yaw, roll) and classifies head-based gaze.

    Head gaze is the secondary "looking away" signal; iris gaze is primary.
    """

    # Thresholds for deviation classification (in degrees)
    YAW_THRESHOLD = 20    # Left/right
    PITCH_THRESHOLD = 15  # Up/down

    def estimate(self, matrix: Optional[Sequence[float]]) -> Optional[HeadPose]:
        """
        Estimate head pose from a transformation matrix.

        Args:
            matrix: 16 floats in column-major order, or None

        Returns:
            HeadPose in degrees, or None when no usable matrix is given
        """
        if matrix is None:
            return None

        try:
            values = np.asarray(matrix, dtype=np.float64).reshape(-1)
            if values.size != 16:
                logger.debug(f"Ignoring transformation matrix with {values.size} values")
                return None

            rotation = values.reshape((4, 4), order="F")[:3, :3]
            pitch, yaw, roll = self._rotation_matrix_to_euler(rotation)
            return HeadPose(pitch=pitch, yaw=yaw, roll=roll)

        except Exception as e:
            logger.warning(f"Head pose estimation error: {e}")
            return None

    def _rotation_matrix_to_euler(self, rotation_matrix: np.ndarray) -> Tuple[float, float, float]:
        """
        Convert rotation matrix to Euler angles (pitch, yaw, roll).

        Returns angles in degrees.
        """
        sy = math.sqrt(
            rotation_matrix[2, 1] ** 2 + rotation_matrix[2, 2] ** 2
        )

        singular = sy < 1e-6

        if not singular:
            pitch = math.atan2(rotation_matrix[2, 1], rotation_matrix[2, 2])
            yaw = math.atan2(-rotation_matrix[2, 0], sy)
            roll = math.atan2(rotation_matrix[1, 0], rotation_matrix[0, 0])
        else:
            # Gimbal lock: yaw is +/-90 and pitch/roll are not separable
            pitch = math.atan2(-rotation_matrix[1, 2], rotation_matrix[1, 1])
            yaw = math.atan2(-rotation_matrix[2, 0], sy)
            roll = 0.0

        return (
            math.degrees(pitch),
            math.degrees(yaw),
            math.degrees(roll)
        )

    def classify_gaze(self, pose: Optional[HeadPose]) -> str:
        """
        Classify head-based gaze direction.

        Horizontal turns take precedence over vertical tilts. The camera
        image is mirrored, so positive yaw reads as 'right'. A pose that is
        off-center but not decisively past either threshold is 'away'.

        Returns:
            One of: 'center', 'left', 'right', 'up', 'down', 'away'
        """
        if pose is None:
            return GazeDirection.CENTER.value

        pitch, yaw = pose.pitch, pose.yaw

        if abs(yaw) < self.YAW_THRESHOLD and abs(pitch) < self.PITCH_THRESHOLD:
            return GazeDirection.CENTER.value

        if yaw > self.YAW_THRESHOLD:
            return GazeDirection.RIGHT.value
        if yaw < -self.YAW_THRESHOLD:
            return GazeDirection.LEFT.value

        if pitch > self.PITCH_THRESHOLD:
            return GazeDirection.DOWN.value
        if pitch < -self.PITCH_THRESHOLD:
            return GazeDirection.UP.value

        return GazeDirection.AWAY.value
