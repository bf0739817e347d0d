"""Scoring modules for proctoring"""

from .integrity_scorer import IntegrityScorer
from .risk_classifier import RiskClassifier
from .pattern_detector import SuspiciousPatternDetector

__all__ = ["IntegrityScorer", "RiskClassifier", "SuspiciousPatternDetector"]
