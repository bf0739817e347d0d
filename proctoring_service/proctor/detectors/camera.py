"""
Camera - Frame sources for the sensor loop
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import cv2
import numpy as np

from ..exceptions import CameraUnavailableError

logger = logging.getLogger(__name__)


class FrameSource(ABC):
    """A camera stream: open, read frames, release"""

    @abstractmethod
    def open(self):
        """Acquire the stream. Raises CameraUnavailableError on failure."""
        ...

    @abstractmethod
    def read(self) -> Optional[np.ndarray]:
        """Latest BGR frame, or None if no frame is ready"""
        ...

    @abstractmethod
    def release(self):
        ...


class OpenCVFrameSource(FrameSource):
    """Webcam capture through OpenCV"""

    def __init__(self, device_index: int = 0, width: int = 1280, height: int = 720, fps: int = 30):
        self.device_index = device_index
        self.width = width
        self.height = height
        self.fps = fps
        self._capture = None

    def open(self):
        capture = cv2.VideoCapture(self.device_index)
        if not capture.isOpened():
            capture.release()
            raise CameraUnavailableError(f"Could not open camera device {self.device_index}")

        capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        capture.set(cv2.CAP_PROP_FPS, self.fps)

        self._capture = capture
        logger.info(f"Camera {self.device_index} opened")

    def read(self) -> Optional[np.ndarray]:
        if self._capture is None:
            return None

        ok, frame = self._capture.read()
        if not ok:
            return None
        return frame

    def release(self):
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.info(f"Camera {self.device_index} released")
