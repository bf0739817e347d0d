"""
Proctoring Sinks - Where the sensor loop sends snapshots and events

Methods may be plain functions or coroutines; the monitor submits them
through JobRunner either way.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from .types import ProctoringEvent, ProctoringMetrics

logger = logging.getLogger(__name__)


class ProctoringSink(ABC):

    @abstractmethod
    def initialize(self, interview_id: str):
        ...

    @abstractmethod
    def store_snapshot(self, session_id: str, seconds_elapsed: int, metrics: ProctoringMetrics):
        ...

    @abstractmethod
    def store_event(self, session_id: str, event: ProctoringEvent, question_index: Optional[int] = None):
        ...

    @abstractmethod
    def finalize(self, session_id: str):
        ...

    def flush(self, session_id: str):
        """Write anything buffered for the session (no-op when nothing is buffered locally)"""
        return None


class LocalProctoringSink(ProctoringSink):
    """Calls a ProctoringService in the same process"""

    def __init__(self, service):
        self.service = service

    def initialize(self, interview_id: str) -> Dict[str, Any]:
        return self.service.initialize(interview_id).to_dict()

    def store_snapshot(self, session_id: str, seconds_elapsed: int, metrics: ProctoringMetrics):
        self.service.store_snapshot(session_id, seconds_elapsed, metrics)

    def store_event(self, session_id: str, event: ProctoringEvent, question_index: Optional[int] = None):
        self.service.store_event(session_id, event, question_index)

    def finalize(self, session_id: str) -> Dict[str, Any]:
        return self.service.finalize(session_id).to_dict()

    def flush(self, session_id: str) -> int:
        return self.service.flush(session_id)
