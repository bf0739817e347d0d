"""
Proctoring Monitor - Client-side sensor loop

Every detection tick: read frame -> detect faces -> aggregate metrics ->
classify violations -> debounce -> hand emitted events to the sink.
Persistence is fire-and-forget so slow I/O never stalls frame sampling.
"""

import logging
from collections import deque
from typing import Callable, List, Optional

from ..config import settings
from .detectors.camera import FrameSource
from .detectors.face_analyzer import FaceAnalyzer
from .detectors.face_landmarker import FaceLandmarkProvider
from .events.classifier import ViolationClassifier
from .events.debouncer import EventDebouncer
from .metrics.aggregator import MetricsAggregator
from .sampler import AttentionSnapshotSampler
from .sinks import ProctoringSink
from .types import ProctoringEvent, ProctoringMetrics, ProctoringStats, ViolationType
from .utils.clock import AsyncioScheduler, Clock, Scheduler, SystemClock, TimerHandle
from .utils.jobs import JobRunner
from .utils.logging import log_proctor_event, log_violation

logger = logging.getLogger(__name__)


class ProctoringMonitor:
    """
    Drives one monitoring session from a camera.

    Usage:
        monitor = ProctoringMonitor(MediaPipeFaceLandmarker(), OpenCVFrameSource(), sink)
        if not monitor.start(session_id):
            ...  # interview continues unmonitored
        monitor.report_tab_switch()
        monitor.stop()
    """

    ATTENTION_WINDOW = 100

    def __init__(
        self,
        provider: FaceLandmarkProvider,
        camera: FrameSource,
        sink: ProctoringSink,
        scheduler: Optional[Scheduler] = None,
        clock: Optional[Clock] = None,
        jobs: Optional[JobRunner] = None,
        analyzer: Optional[FaceAnalyzer] = None,
        detection_interval_ms: Optional[int] = None,
        snapshot_interval: Optional[float] = None,
        on_event: Optional[Callable[[ProctoringEvent], None]] = None,
        on_metrics: Optional[Callable[[ProctoringMetrics], None]] = None
    ):
        self.provider = provider
        self.camera = camera
        self.sink = sink
        self.clock = clock or SystemClock()
        self.scheduler = scheduler or AsyncioScheduler()
        self.jobs = jobs or JobRunner()
        self.on_event = on_event
        self.on_metrics = on_metrics

        self.detection_interval_ms = detection_interval_ms or settings.PROCTOR_DETECTION_INTERVAL_MS

        self.aggregator = MetricsAggregator(self.clock, analyzer)
        self.classifier = ViolationClassifier(settings.PROCTOR_NO_FACE_GRACE_SECONDS)
        self.debouncer = EventDebouncer(self.clock, settings.PROCTOR_EVENT_COOLDOWN_SECONDS)
        self.sampler = AttentionSnapshotSampler(
            sink,
            lambda: self.metrics,
            self.scheduler,
            clock=self.clock,
            jobs=self.jobs,
            interval=settings.PROCTOR_SNAPSHOT_INTERVAL_SECONDS if snapshot_interval is None else snapshot_interval
        )

        self.session_id: Optional[str] = None
        self.question_index: Optional[int] = None
        self.metrics = ProctoringMetrics()
        self.stats = ProctoringStats()
        self.events: List[ProctoringEvent] = []
        self.error_count = 0

        self._interval: Optional[TimerHandle] = None
        self._started_at = 0.0
        self._last_tick_at = 0.0
        self._attention_scores = deque(maxlen=self.ATTENTION_WINDOW)

    @property
    def is_running(self) -> bool:
        return self._interval is not None

    # ============== Lifecycle ==============

    def start(self, session_id: str) -> bool:
        """
        Load the landmark model, open the camera and start sampling.

        Returns:
            False if the model or camera is unavailable (nothing is started)
        """
        if self.is_running:
            return True

        try:
            self.provider.load()
            self.camera.open()
        except Exception as e:
            log_proctor_event(session_id, "start_failed", {"error": e}, level="error")
            self.camera.release()
            return False

        self.session_id = session_id
        self.question_index = None
        self.metrics = ProctoringMetrics()
        self.stats = ProctoringStats()
        self.events = []
        self.error_count = 0
        self._attention_scores.clear()

        self.aggregator.reset()
        self.debouncer.reset()
        self._started_at = self.clock.monotonic()
        self._last_tick_at = self._started_at

        self._interval = self.scheduler.call_every(self.detection_interval_ms / 1000.0, self.tick)
        self.sampler.start(session_id)

        log_proctor_event(session_id, "monitor_started", {"interval_ms": self.detection_interval_ms})
        return True

    def stop(self):
        """Stop sampling, request a final flush and release the camera. Safe to call twice."""
        if not self.is_running:
            return

        self._interval.cancel()
        self._interval = None
        self.sampler.stop()

        self.jobs.submit(self.sink.flush, self.session_id, description=f"final flush session={self.session_id}")
        self.camera.release()

        self.stats.session_duration = self.clock.monotonic() - self._started_at
        log_proctor_event(
            self.session_id,
            "monitor_stopped",
            {"violations": self.stats.total_violations, "errors": self.error_count}
        )

    # ============== Detection loop ==============

    def tick(self):
        """One detection step. Never raises."""
        if not self.is_running:
            return

        try:
            frame = self.camera.read()
            if frame is None:
                return

            faces = self.provider.detect(frame)
            result = self.aggregator.update(faces, frame)
            candidates = self.classifier.classify(result)
            emitted = [self.debouncer.emit(candidate) for candidate in candidates]
        except Exception as e:
            self.error_count += 1
            logger.error(f"[PROCTOR] session={self.session_id} event=tick_failed error={e}")
            return

        self._commit(result.metrics)

        for event in emitted:
            if event is not None:
                self._dispatch(event)

    def report_tab_switch(self) -> Optional[ProctoringEvent]:
        """Page-visibility signal: goes through the same debouncer as frame violations"""
        if not self.is_running:
            return None

        event = self.debouncer.emit(self.classifier.tab_switch())
        if event is not None:
            self._dispatch(event)
        return event

    def set_question_index(self, index: Optional[int]):
        """Tag subsequent events with the current question"""
        self.question_index = index

    # ============== Internals ==============

    def _commit(self, metrics: ProctoringMetrics):
        now = self.clock.monotonic()
        if not metrics.face_detected:
            self.stats.no_face_detected_duration += now - self._last_tick_at
        self._last_tick_at = now

        self.metrics = metrics
        self._attention_scores.append(metrics.attention_score)
        self.stats.average_attention_score = sum(self._attention_scores) / len(self._attention_scores)
        self.stats.session_duration = now - self._started_at

        if self.on_metrics is not None:
            try:
                self.on_metrics(metrics)
            except Exception as e:
                logger.error(f"[PROCTOR] on_metrics callback failed: {e}")

    def _dispatch(self, event: ProctoringEvent):
        self.events.append(event)
        self.stats.total_violations = self.debouncer.total_violations

        if event.type == ViolationType.MULTIPLE_FACES.value:
            self.stats.multiple_faces_count += 1
        elif event.type == ViolationType.LOOKING_AWAY.value:
            self.stats.looking_away_count += 1
        elif event.type == ViolationType.TAB_SWITCH.value:
            self.stats.tab_switch_count += 1

        log_violation(self.session_id, event.type, event.confidence, event.message)

        self.jobs.submit(
            self.sink.store_event,
            self.session_id,
            event,
            self.question_index,
            description=f"store {event.type} session={self.session_id}"
        )

        if self.on_event is not None:
            try:
                self.on_event(event)
            except Exception as e:
                logger.error(f"[PROCTOR] on_event callback failed: {e}")
