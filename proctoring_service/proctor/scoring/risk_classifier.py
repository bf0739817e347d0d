"""
Risk Classifier - Buckets integrity scores into risk levels
"""

import logging
from typing import List, Tuple

from ..types import RiskLevel

logger = logging.getLogger(__name__)


class RiskClassifier:
    """
    Maps an integrity score to a risk level via fixed cut points.

    >=90 VERY_LOW, >=75 LOW, >=60 MEDIUM, >=40 HIGH, else CRITICAL.
    HIGH and CRITICAL sessions flag the parent interview for review.
    """

    CUT_POINTS: List[Tuple[int, RiskLevel]] = [
        (90, RiskLevel.VERY_LOW),
        (75, RiskLevel.LOW),
        (60, RiskLevel.MEDIUM),
        (40, RiskLevel.HIGH)
    ]

    FLAGGED_LEVELS = (RiskLevel.HIGH, RiskLevel.CRITICAL)

    def classify(self, integrity_score: float) -> RiskLevel:
        for cut_point, level in self.CUT_POINTS:
            if integrity_score >= cut_point:
                return level
        return RiskLevel.CRITICAL

    def should_flag(self, risk_level) -> bool:
        """True if the interview must be marked FLAGGED"""
        return RiskLevel(risk_level) in self.FLAGGED_LEVELS
