"""
Attention Snapshot Sampler - Persists the current metrics on a fixed interval
"""

import logging
from typing import Callable, Optional

from .types import ProctoringMetrics
from .utils.clock import Clock, Scheduler, SystemClock, TimerHandle
from .utils.jobs import JobRunner

logger = logging.getLogger(__name__)


class AttentionSnapshotSampler:
    """
    Low-rate attention time series, independent of violations.

    Every `interval` seconds while active, the latest metrics are handed to
    the sink tagged with whole seconds elapsed since start().
    """

    INTERVAL_SECONDS = 10.0

    def __init__(
        self,
        sink,
        metrics_provider: Callable[[], ProctoringMetrics],
        scheduler: Scheduler,
        clock: Optional[Clock] = None,
        jobs: Optional[JobRunner] = None,
        interval: Optional[float] = None
    ):
        self.sink = sink
        self.metrics_provider = metrics_provider
        self.scheduler = scheduler
        self.clock = clock or SystemClock()
        self.jobs = jobs or JobRunner()
        self.interval = self.INTERVAL_SECONDS if interval is None else interval

        self.session_id: Optional[str] = None
        self.started_at = 0.0
        self.samples_taken = 0
        self._timer: Optional[TimerHandle] = None

    @property
    def is_active(self) -> bool:
        return self._timer is not None

    def start(self, session_id: str):
        self.stop()
        self.session_id = session_id
        self.started_at = self.clock.monotonic()
        self.samples_taken = 0
        self._timer = self.scheduler.call_every(self.interval, self.sample)

    def sample(self):
        if self.session_id is None:
            return

        try:
            metrics = self.metrics_provider()
        except Exception as e:
            logger.error(f"[SNAPSHOT] Could not read metrics: {e}")
            return

        seconds_elapsed = int(self.clock.monotonic() - self.started_at)
        self.samples_taken += 1
        self.jobs.submit(
            self.sink.store_snapshot,
            self.session_id,
            seconds_elapsed,
            metrics,
            description=f"snapshot session={self.session_id} t={seconds_elapsed}s"
        )

    def stop(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
