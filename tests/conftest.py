"""
Pytest Configuration for Proctoring Service Tests
"""
import math
import os
import sys
from datetime import datetime, timedelta

import numpy as np
import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Tests never touch a real PostgreSQL server
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from proctoring_service.db import build_engine, build_session_factory, init_db
from proctoring_service.proctor.detectors.camera import FrameSource
from proctoring_service.proctor.detectors.face_landmarker import FaceLandmarkProvider
from proctoring_service.proctor.exceptions import CameraUnavailableError
from proctoring_service.proctor.service import ProctoringService
from proctoring_service.proctor.sinks import ProctoringSink
from proctoring_service.proctor.storage.repository import ProctoringRepository
from proctoring_service.proctor.types import FaceObservation, ProctoringEvent
from proctoring_service.proctor.utils.clock import VirtualClock, VirtualScheduler


# ============================================================================
# Face fixtures
# ============================================================================

# Eye geometry in normalized image space: (outer, inner, iris, top, bottom)
LEFT_EYE = {"outer": (0.40, 0.45), "inner": (0.46, 0.45), "top": (0.43, 0.44), "bottom": (0.43, 0.46)}
RIGHT_EYE = {"outer": (0.60, 0.45), "inner": (0.54, 0.45), "top": (0.57, 0.44), "bottom": (0.57, 0.46)}
EYE_WIDTH = 0.06
EYE_HEIGHT = 0.02


def make_landmarks(offset_x: float = 0.0, offset_y: float = 0.0, face_width: float = 0.4):
    """
    478-point face mesh whose averaged iris offsets equal (offset_x, offset_y).

    The face spans `face_width` of the frame horizontally.
    """
    points = [[0.5, 0.5, 0.0] for _ in range(478)]
    points[0] = [0.5 - face_width / 2, 0.5, 0.0]
    points[1] = [0.5 + face_width / 2, 0.5, 0.0]

    for eye, (outer, inner, iris, top, bottom) in (
        (LEFT_EYE, (33, 133, 468, 159, 145)),
        (RIGHT_EYE, (263, 362, 473, 386, 374)),
    ):
        center_x = (eye["outer"][0] + eye["inner"][0]) / 2
        center_y = (eye["top"][1] + eye["bottom"][1]) / 2
        points[outer] = [eye["outer"][0], eye["outer"][1], 0.0]
        points[inner] = [eye["inner"][0], eye["inner"][1], 0.0]
        points[top] = [eye["top"][0], eye["top"][1], 0.0]
        points[bottom] = [eye["bottom"][0], eye["bottom"][1], 0.0]
        points[iris] = [center_x + offset_x * EYE_WIDTH, center_y + offset_y * EYE_HEIGHT, 0.0]

    return points


def make_matrix(pitch: float = 0.0, yaw: float = 0.0, roll: float = 0.0):
    """Column-major 4x4 transformation matrix with R = Rz(roll) Ry(yaw) Rx(pitch)"""
    p, y, r = (math.radians(a) for a in (pitch, yaw, roll))

    rx = np.array([[1, 0, 0], [0, math.cos(p), -math.sin(p)], [0, math.sin(p), math.cos(p)]])
    ry = np.array([[math.cos(y), 0, math.sin(y)], [0, 1, 0], [-math.sin(y), 0, math.cos(y)]])
    rz = np.array([[math.cos(r), -math.sin(r), 0], [math.sin(r), math.cos(r), 0], [0, 0, 1]])

    matrix = np.eye(4)
    matrix[:3, :3] = rz @ ry @ rx
    matrix[:3, 3] = [0.0, 0.0, -40.0]
    return matrix.flatten(order="F").tolist()


def make_face(offset_x=0.0, offset_y=0.0, blink=0.0, pitch=0.0, yaw=0.0, with_matrix=True, face_width=0.4):
    return FaceObservation(
        landmarks=make_landmarks(offset_x, offset_y, face_width),
        blendshapes={"eyeBlinkLeft": blink, "eyeBlinkRight": blink},
        transformation_matrix=make_matrix(pitch, yaw) if with_matrix else None
    )


def make_event(event_type="looking_away", timestamp=None, confidence=0.75, severity="MEDIUM", message="test"):
    return ProctoringEvent(
        type=event_type,
        timestamp=timestamp or datetime(2025, 1, 1, 12, 0, 0),
        confidence=confidence,
        severity=severity,
        message=message,
        metadata={}
    )


@pytest.fixture
def face():
    return make_face


# ============================================================================
# Sensor fakes
# ============================================================================

class ScriptedProvider(FaceLandmarkProvider):
    """Returns `faces` for every frame; can fail on load or detect"""

    def __init__(self, faces=None, load_error=None):
        self.faces = faces or []
        self.load_error = load_error
        self.detect_error = None
        self.loaded = False
        self.calls = 0

    def load(self):
        if self.load_error is not None:
            raise self.load_error
        self.loaded = True

    def detect(self, frame):
        self.calls += 1
        if self.detect_error is not None:
            raise self.detect_error
        return list(self.faces)


class StaticCamera(FrameSource):
    """Grey 640x480 frames; optionally refuses to open"""

    def __init__(self, available=True, brightness=128):
        self.available = available
        self.brightness = brightness
        self.opened = False
        self.released = 0

    def open(self):
        if not self.available:
            raise CameraUnavailableError("Permission denied")
        self.opened = True

    def read(self):
        if not self.opened:
            return None
        return np.full((480, 640, 3), self.brightness, dtype=np.uint8)

    def release(self):
        self.opened = False
        self.released += 1


class RecordingSink(ProctoringSink):
    """Keeps every call in memory"""

    def __init__(self):
        self.snapshots = []
        self.events = []
        self.flushes = []
        self.finalized = []
        self.fail_events = False

    def initialize(self, interview_id):
        return {"id": "session-1", "interviewId": interview_id}

    def store_snapshot(self, session_id, seconds_elapsed, metrics):
        self.snapshots.append((session_id, seconds_elapsed, metrics))

    def store_event(self, session_id, event, question_index=None):
        if self.fail_events:
            raise ConnectionError("backend unreachable")
        self.events.append((session_id, event, question_index))

    def finalize(self, session_id):
        self.finalized.append(session_id)
        return {"id": session_id}

    def flush(self, session_id):
        self.flushes.append(session_id)


@pytest.fixture
def provider():
    return ScriptedProvider()


@pytest.fixture
def camera():
    return StaticCamera()


@pytest.fixture
def sink():
    return RecordingSink()


# ============================================================================
# Time and persistence
# ============================================================================

@pytest.fixture
def clock():
    return VirtualClock(start=datetime(2025, 1, 1, 12, 0, 0))


@pytest.fixture
def scheduler(clock):
    return VirtualScheduler(clock)


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database per test"""
    engine = build_engine("sqlite:///:memory:")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def repository(engine):
    return ProctoringRepository(build_session_factory(engine))


@pytest.fixture
def interview(repository):
    return repository.create_interview("interview-1")


@pytest.fixture
def service(repository, scheduler, clock):
    return ProctoringService(repository, scheduler=scheduler, clock=clock)


@pytest.fixture
def add_questions(repository, interview):
    """Add AGENT messages at the given offsets (seconds) from the clock start"""
    def _add(offsets, start=datetime(2025, 1, 1, 12, 0, 0)):
        for i, offset in enumerate(offsets):
            repository.add_message(interview.id, "AGENT", f"Question {i + 1}", start + timedelta(seconds=offset))
    return _add


@pytest.fixture
def client(service):
    """FastAPI test client wired to the in-memory service"""
    from proctoring_service.main import app
    from proctoring_service.proctor.api import get_proctoring_service

    app.dependency_overrides[get_proctoring_service] = lambda: service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
