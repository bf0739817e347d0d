"""
Face Landmarker - Boundary to the face landmark / blend-shape / pose model

The proctoring engine only depends on FaceLandmarkProvider.detect(). The
MediaPipe implementation is loaded lazily so the rest of the package works
without mediapipe installed.
"""

import os
import time
import logging
from abc import ABC, abstractmethod
from typing import List, Optional

import cv2
import numpy as np

from ...config import settings
from ..types import FaceObservation

logger = logging.getLogger(__name__)

DEFAULT_MODEL_PATH = os.getenv(
    "FACE_LANDMARKER_MODEL",
    os.path.join(os.path.dirname(os.path.dirname(__file__)), "models", "weights", "face_landmarker.task")
)


class FaceLandmarkProvider(ABC):
    """Opaque capability: zero or more faces per frame"""

    def load(self):
        """Prepare the model. Raises if it cannot be loaded."""
        return None

    @abstractmethod
    def detect(self, frame: np.ndarray) -> List[FaceObservation]:
        ...

    def close(self):
        return None


class MediaPipeFaceLandmarker(FaceLandmarkProvider):
    """
    MediaPipe Tasks face landmarker in VIDEO mode.

    Configured to output blend-shapes and facial transformation matrices,
    which the head pose and blink detectors need.
    """

    def __init__(self, model_path: Optional[str] = None, max_faces: Optional[int] = None):
        self.model_path = model_path or DEFAULT_MODEL_PATH
        self.max_faces = max_faces or settings.PROCTOR_MAX_FACES
        self._landmarker = None
        self._mp = None
        self._started_at = time.monotonic()
        self._last_timestamp_ms = -1

    def load(self):
        if self._landmarker is not None:
            return

        if not os.path.exists(self.model_path):
            raise FileNotFoundError(
                f"face_landmarker.task not found at {self.model_path}. "
                f"Download from https://storage.googleapis.com/mediapipe-models/"
                f"face_landmarker/face_landmarker/float16/1/face_landmarker.task"
            )

        try:
            import mediapipe as mp
            from mediapipe.tasks.python import BaseOptions
            from mediapipe.tasks.python import vision
        except ImportError:
            logger.error("mediapipe not installed. Run: pip install mediapipe")
            raise

        options = vision.FaceLandmarkerOptions(
            base_options=BaseOptions(model_asset_path=self.model_path),
            running_mode=vision.RunningMode.VIDEO,
            num_faces=self.max_faces,
            output_face_blendshapes=True,
            output_facial_transformation_matrixes=True
        )
        self._mp = mp
        self._landmarker = vision.FaceLandmarker.create_from_options(options)
        logger.info(f"Loaded face landmarker from: {self.model_path}")

    def _next_timestamp_ms(self) -> int:
        # VIDEO mode requires strictly increasing timestamps
        timestamp = int((time.monotonic() - self._started_at) * 1000)
        if timestamp <= self._last_timestamp_ms:
            timestamp = self._last_timestamp_ms + 1
        self._last_timestamp_ms = timestamp
        return timestamp

    def detect(self, frame: np.ndarray) -> List[FaceObservation]:
        if frame is None or frame.size == 0:
            return []

        self.load()

        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        image = self._mp.Image(image_format=self._mp.ImageFormat.SRGB, data=rgb)
        result = self._landmarker.detect_for_video(image, self._next_timestamp_ms())

        faces = []
        for i, points in enumerate(result.face_landmarks or []):
            blendshapes = {}
            if result.face_blendshapes and i < len(result.face_blendshapes):
                blendshapes = {
                    category.category_name: category.score
                    for category in result.face_blendshapes[i]
                }

            matrix = None
            if result.facial_transformation_matrixes and i < len(result.facial_transformation_matrixes):
                # numpy 4x4 (row-major) -> 16 floats column-major
                matrix = np.asarray(result.facial_transformation_matrixes[i]).flatten(order="F").tolist()

            faces.append(FaceObservation(
                landmarks=[(p.x, p.y, p.z) for p in points],
                blendshapes=blendshapes,
                transformation_matrix=matrix
            ))

        return faces[:self.max_faces]

    def close(self):
        if self._landmarker is not None:
            self._landmarker.close()
            self._landmarker = None
