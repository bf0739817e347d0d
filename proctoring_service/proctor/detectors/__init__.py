"""Detector modules for proctoring"""

from .head_pose import HeadPoseEstimator
from .gaze_tracker import GazeTracker
from .blink_detector import BlinkDetector
from .face_analyzer import FaceAnalyzer
from .face_landmarker import FaceLandmarkProvider, MediaPipeFaceLandmarker
from .camera import FrameSource, OpenCVFrameSource

__all__ = [
    "HeadPoseEstimator",
    "GazeTracker",
    "BlinkDetector",
    "FaceAnalyzer",
    "FaceLandmarkProvider",
    "MediaPipeFaceLandmarker",
    "FrameSource",
    "OpenCVFrameSource"
]
