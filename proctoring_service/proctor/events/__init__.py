"""Violation classification, debouncing and batching"""

from .classifier import ViolationClassifier
from .debouncer import EventDebouncer
from .batcher import BufferedEvent, EventBatcher, SessionEventBuffer

__all__ = [
    "ViolationClassifier",
    "EventDebouncer",
    "BufferedEvent",
    "EventBatcher",
    "SessionEventBuffer"
]
