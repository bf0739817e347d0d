"""
Suspicious Pattern Detector - Correlates looking-away events with question timing
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, Sequence

from ..types import PatternAnalysis, ViolationType

logger = logging.getLogger(__name__)


class SuspiciousPatternDetector:
    """
    Flags candidates who repeatedly look away right before a question is asked.

    For each question timestamp q, a hit is a looking_away event in
    [q - WINDOW_SECONDS, q]. The session is suspicious when the share of
    questions with a hit exceeds SUSPICIOUS_RATIO.
    """

    WINDOW_SECONDS = 10.0
    SUSPICIOUS_RATIO = 0.3

    def __init__(self, window_seconds: float = None, suspicious_ratio: float = None):
        self.window_seconds = self.WINDOW_SECONDS if window_seconds is None else window_seconds
        self.suspicious_ratio = self.SUSPICIOUS_RATIO if suspicious_ratio is None else suspicious_ratio

    def detect(self, events: Sequence, question_timestamps: Sequence[datetime]) -> PatternAnalysis:
        """
        Analyze persisted events against question-asked times.

        Args:
            events: objects with type, timestamp and (optionally) question_index
            question_timestamps: times the interviewer asked each question

        Returns:
            PatternAnalysis
        """
        if not events:
            return PatternAnalysis(
                is_suspicious=False,
                confidence=0,
                reason="No violations detected"
            )

        window = timedelta(seconds=self.window_seconds)
        looking_away_times = [
            e.timestamp for e in events
            if e.type == ViolationType.LOOKING_AWAY.value
        ]

        hits = 0
        for asked_at in question_timestamps:
            if any(asked_at - window <= t <= asked_at for t in looking_away_times):
                hits += 1

        total = len(question_timestamps)
        ratio = hits / total if total > 0 else 0

        analysis = PatternAnalysis(
            is_suspicious=ratio > self.suspicious_ratio,
            confidence=ratio,
            reason=f"User looked away before {hits}/{total} questions",
            violations_by_question=self._violations_by_question(events)
        )

        if analysis.is_suspicious:
            logger.warning(f"Suspicious pattern: {analysis.reason}")

        return analysis

    @staticmethod
    def _violations_by_question(events: Sequence) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for event in events:
            index = getattr(event, "question_index", None)
            if index is None:
                continue
            key = str(index)
            counts[key] = counts.get(key, 0) + 1
        return counts
