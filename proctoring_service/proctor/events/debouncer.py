"""
Event Debouncer - At most one emitted event per violation type per cool-down window
"""

import logging
from typing import Dict, Optional

from ..types import ProctoringEvent, ViolationCandidate, is_violation
from ..utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


class EventDebouncer:
    """
    Per-type cool-down for violation candidates.

    The window is measured from the last *emitted* event of the same type;
    suppressed candidates do not extend it. Every emitted event increments
    total_violations exactly once.
    """

    COOLDOWN_SECONDS = 3.0

    def __init__(self, clock: Optional[Clock] = None, cooldown_seconds: Optional[float] = None):
        self.clock = clock or SystemClock()
        self.cooldown_seconds = self.COOLDOWN_SECONDS if cooldown_seconds is None else cooldown_seconds
        self.last_emitted: Dict[str, float] = {}
        self.total_violations = 0
        self.suppressed_count = 0

    def emit(self, candidate: ViolationCandidate, now: Optional[float] = None) -> Optional[ProctoringEvent]:
        """
        Return an event for the candidate, or None if it is suppressed.

        Args:
            candidate: classified violation
            now: monotonic seconds (defaults to the clock)
        """
        if not is_violation(candidate.type):
            return None

        if now is None:
            now = self.clock.monotonic()

        last = self.last_emitted.get(candidate.type)
        if last is not None and now - last < self.cooldown_seconds:
            self.suppressed_count += 1
            return None

        self.last_emitted[candidate.type] = now
        self.total_violations += 1

        return ProctoringEvent(
            type=candidate.type,
            timestamp=self.clock.utcnow(),
            confidence=candidate.confidence,
            severity=candidate.severity,
            message=candidate.message,
            metadata=dict(candidate.metadata)
        )

    def reset(self):
        self.last_emitted.clear()
        self.total_violations = 0
        self.suppressed_count = 0
