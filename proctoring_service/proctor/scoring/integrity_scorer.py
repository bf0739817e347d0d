"""
Integrity Scorer - Computes integrity score from per-type violation counts
"""

import math
import logging
from typing import Any, Dict, Mapping

logger = logging.getLogger(__name__)


class IntegrityScorer:
    """
    Computes integrity score from persisted violation counts.

    Formula:
        excess[type]  = max(0, count[type] - THRESHOLDS[type])
        penalty       = sum(excess[type] * WEIGHTS[type])
        max_penalty   = sum(WEIGHTS[type] * 3)
        integrity     = round(max(0, 100 - penalty / max_penalty * 100))

    Counts at or below a type's threshold are tolerated and cost nothing.
    """

    # Penalty per violation above the tolerated count
    WEIGHTS: Dict[str, float] = {
        "multiple_faces": 100,
        "no_face": 80,
        "looking_away": 60,
        "tab_switch": 70
    }

    # Tolerated violations per type
    THRESHOLDS: Dict[str, int] = {
        "multiple_faces": 1,
        "no_face": 5,
        "looking_away": 3,
        "tab_switch": 2
    }

    # Each weight counts this many times toward the maximum penalty
    MAX_PENALTY_MULTIPLIER = 3

    def __init__(self, weights: Dict[str, float] = None, thresholds: Dict[str, int] = None):
        """
        Initialize scorer with optional custom weights and thresholds.

        Args:
            weights: Optional dict overriding default weights
            thresholds: Optional dict overriding default thresholds
        """
        self.weights = self.WEIGHTS.copy()
        if weights:
            self.weights.update(weights)

        self.thresholds = self.THRESHOLDS.copy()
        if thresholds:
            self.thresholds.update(thresholds)

    @property
    def max_penalty(self) -> float:
        return sum(weight * self.MAX_PENALTY_MULTIPLIER for weight in self.weights.values())

    def compute(self, counts: Mapping[str, int]) -> int:
        """
        Compute integrity score from violation counts.

        Args:
            counts: violation type -> number of persisted events

        Returns:
            Integrity score (0-100, higher is better)
        """
        return self.compute_breakdown(counts)["integrity_score"]

    def compute_breakdown(self, counts: Mapping[str, int]) -> Dict[str, Any]:
        """
        Compute integrity score with detailed breakdown.

        Returns:
            Dict with score and per-type penalties
        """
        total_penalty = 0.0
        penalties = {}

        for violation_type, weight in self.weights.items():
            count = int(counts.get(violation_type, 0) or 0)
            threshold = self.thresholds.get(violation_type, 0)
            excess = max(0, count - threshold)
            penalty = excess * weight

            penalties[violation_type] = {
                "count": count,
                "threshold": threshold,
                "excess": excess,
                "weight": weight,
                "penalty": penalty
            }
            total_penalty += penalty

            logger.debug(f"Violation {violation_type}: count={count}, excess={excess}, penalty={penalty}")

        max_penalty = self.max_penalty
        raw_score = 100.0 - (total_penalty / max_penalty) * 100 if max_penalty else 100.0
        # Round half up
        final_score = int(math.floor(max(0.0, raw_score) + 0.5))

        return {
            "integrity_score": final_score,
            "raw_score": round(raw_score, 2),
            "penalties": penalties,
            "total_penalty": total_penalty,
            "max_penalty": max_penalty
        }
