"""
Blink Detector - Detects eye blinks from blend-shape scores

A blinking frame must never count as "looking away": during a blink the
iris landmarks collapse toward the lower lid and read as a downward gaze.
"""

import logging
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)


class BlinkDetector:
    """
    Detects blinks using the eyeBlinkLeft / eyeBlinkRight blend-shapes.

    Either eye above the threshold counts as a blink.
    """

    LEFT_CATEGORY = "eyeBlinkLeft"
    RIGHT_CATEGORY = "eyeBlinkRight"

    # Eye more than 70% closed
    DEFAULT_BLINK_THRESHOLD = 0.7

    def __init__(self, blink_threshold: float = DEFAULT_BLINK_THRESHOLD):
        self.blink_threshold = blink_threshold

        # State tracking
        self._blinking_frames = 0
        self._frame_count = 0

    def detect(self, blendshapes: Optional[Mapping[str, float]]) -> bool:
        """
        Check whether the frame is a blink.

        Args:
            blendshapes: category name -> score (0-1)

        Returns:
            True if either eye closure score exceeds the threshold
        """
        self._frame_count += 1

        if not blendshapes:
            return False

        left_score = float(blendshapes.get(self.LEFT_CATEGORY, 0.0) or 0.0)
        right_score = float(blendshapes.get(self.RIGHT_CATEGORY, 0.0) or 0.0)

        is_blinking = left_score > self.blink_threshold or right_score > self.blink_threshold

        if is_blinking:
            self._blinking_frames += 1
            logger.debug(f"Blink detected: L={left_score:.2f}, R={right_score:.2f}")

        return is_blinking

    def get_metrics(self) -> Dict[str, Any]:
        """Get blink detection metrics"""
        return {
            "blinking_frames": self._blinking_frames,
            "frame_count": self._frame_count,
            "blink_ratio": self._blinking_frames / max(1, self._frame_count),
            "blink_threshold": self.blink_threshold
        }

    def reset(self):
        """Reset counters"""
        self._blinking_frames = 0
        self._frame_count = 0
