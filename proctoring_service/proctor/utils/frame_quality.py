"""
Frame Quality Checker - lighting and face-distance estimates for live metrics
"""

import cv2
import numpy as np
import logging
from typing import Dict, Any, Optional, Sequence

logger = logging.getLogger(__name__)

# Face width as a fraction of frame width (normalized landmark space)
TOO_CLOSE_FACE_WIDTH = 0.6
TOO_FAR_FACE_WIDTH = 0.15

# Average grey level (0-255) outside which lighting is "poor"
MIN_BRIGHTNESS = 40
MAX_BRIGHTNESS = 220


def frame_brightness(frame: np.ndarray) -> float:
    """Mean grey level of a BGR or greyscale frame"""
    gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY) if frame.ndim == 3 else frame
    return float(np.mean(gray))


def check_frame_quality(
    frame: Optional[np.ndarray],
    min_brightness: float = MIN_BRIGHTNESS,
    max_brightness: float = MAX_BRIGHTNESS,
    min_blur_score: float = 50
) -> Dict[str, Any]:
    """
    Check frame quality for proctoring.

    Args:
        frame: BGR image from OpenCV
        min_brightness: Minimum average brightness (0-255)
        max_brightness: Maximum average brightness (0-255)
        min_blur_score: Minimum Laplacian variance for blur detection

    Returns:
        Dict with:
            - is_valid: bool
            - issues: List of quality issues
            - brightness: float (0-255)
            - blur_score: float
    """
    issues = []

    if frame is None or frame.size == 0:
        return {
            "is_valid": False,
            "issues": ["empty_frame"],
            "brightness": 0.0,
            "blur_score": 0.0
        }

    gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY) if frame.ndim == 3 else frame

    brightness = float(np.mean(gray))
    if brightness < min_brightness:
        issues.append("too_dark")
    elif brightness > max_brightness:
        issues.append("too_bright")

    # Laplacian variance: low values mean a blurry frame
    blur_score = float(cv2.Laplacian(gray, cv2.CV_64F).var())
    if blur_score < min_blur_score:
        issues.append("too_blurry")

    return {
        "is_valid": len(issues) == 0,
        "issues": issues,
        "brightness": brightness,
        "blur_score": blur_score
    }


def estimate_lighting_quality(frame: Optional[np.ndarray]) -> str:
    """'good', 'poor' or 'unknown' (no frame) from average brightness"""
    if frame is None or frame.size == 0:
        return "unknown"

    try:
        brightness = frame_brightness(frame)
    except Exception as e:
        logger.warning(f"Lighting estimate error: {e}")
        return "unknown"

    if brightness < MIN_BRIGHTNESS or brightness > MAX_BRIGHTNESS:
        return "poor"
    return "good"


def estimate_face_distance(landmarks: Sequence[Sequence[float]]) -> str:
    """
    Classify camera distance from the width of the face landmark box.

    Landmarks are normalized to [0, 1], so the box width is the fraction of
    the frame the face occupies.
    """
    if not landmarks:
        return "unknown"

    xs = [point[0] for point in landmarks]
    width = max(xs) - min(xs)

    if width > TOO_CLOSE_FACE_WIDTH:
        return "too_close"
    if width < TOO_FAR_FACE_WIDTH:
        return "too_far"
    return "optimal"
