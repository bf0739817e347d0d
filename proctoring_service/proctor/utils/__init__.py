"""Utility modules"""

from .clock import (
    Clock,
    SystemClock,
    VirtualClock,
    Scheduler,
    AsyncioScheduler,
    VirtualScheduler,
    TimerHandle,
    utcnow
)
from .frame_quality import check_frame_quality, estimate_face_distance, estimate_lighting_quality
from .jobs import JobRunner
from .logging import log_proctor_event

__all__ = [
    "Clock",
    "SystemClock",
    "VirtualClock",
    "Scheduler",
    "AsyncioScheduler",
    "VirtualScheduler",
    "TimerHandle",
    "utcnow",
    "check_frame_quality",
    "estimate_face_distance",
    "estimate_lighting_quality",
    "JobRunner",
    "log_proctor_event"
]
