"""
Tests for integrity scoring, risk classification and pattern detection
"""

from datetime import datetime, timedelta

import pytest

from conftest import make_event
from proctoring_service.proctor.scoring import IntegrityScorer, RiskClassifier, SuspiciousPatternDetector
from proctoring_service.proctor.types import RiskLevel


class TestIntegrityScorer:
    """Tests for IntegrityScorer"""

    def test_no_violations(self):
        assert IntegrityScorer().compute({}) == 100

    def test_counts_at_threshold_are_free(self):
        """looking_away 3 (threshold 3) has no excess"""
        scorer = IntegrityScorer()
        counts = {"multiple_faces": 0, "no_face": 0, "looking_away": 3, "tab_switch": 0}

        assert scorer.compute(counts) == 100
        assert RiskClassifier().classify(scorer.compute(counts)) == RiskLevel.VERY_LOW

    def test_penalty_normalized_against_maximum(self):
        """One excess multiple_faces: 100 / 930 of the scale"""
        breakdown = IntegrityScorer().compute_breakdown({"multiple_faces": 2})

        assert breakdown["max_penalty"] == 930
        assert breakdown["total_penalty"] == 100
        assert breakdown["integrity_score"] == 89
        assert breakdown["penalties"]["multiple_faces"]["excess"] == 1

    def test_combined_penalties(self):
        # (2*100 + 1*80 + 2*60 + 1*70) / 930 = 470 / 930 -> 49.46 -> 49
        counts = {"multiple_faces": 3, "no_face": 6, "looking_away": 5, "tab_switch": 3}
        assert IntegrityScorer().compute(counts) == 49

    def test_floors_at_zero(self):
        assert IntegrityScorer().compute({"multiple_faces": 50}) == 0

    @pytest.mark.parametrize("violation_type", ["multiple_faces", "no_face", "looking_away", "tab_switch"])
    def test_monotonic_and_bounded(self, violation_type):
        """Score never increases as one count grows, and stays in [0, 100]"""
        scorer = IntegrityScorer()
        base = {"multiple_faces": 1, "no_face": 2, "looking_away": 4, "tab_switch": 1}

        previous = 101
        for count in range(0, 30):
            score = scorer.compute({**base, violation_type: count})
            assert 0 <= score <= 100
            assert score <= previous
            previous = score

    def test_custom_weights(self):
        scorer = IntegrityScorer(weights={"tab_switch": 0})
        assert scorer.compute({"tab_switch": 10}) == 100


class TestRiskClassifier:
    """Tests for RiskClassifier"""

    @pytest.mark.parametrize("score,expected", [
        (100, RiskLevel.VERY_LOW),
        (90, RiskLevel.VERY_LOW),
        (89, RiskLevel.LOW),
        (75, RiskLevel.LOW),
        (74, RiskLevel.MEDIUM),
        (60, RiskLevel.MEDIUM),
        (59, RiskLevel.HIGH),
        (40, RiskLevel.HIGH),
        (39, RiskLevel.CRITICAL),
        (0, RiskLevel.CRITICAL),
    ])
    def test_boundaries(self, score, expected):
        assert RiskClassifier().classify(score) == expected

    def test_should_flag(self):
        classifier = RiskClassifier()

        assert classifier.should_flag(RiskLevel.HIGH) is True
        assert classifier.should_flag("CRITICAL") is True
        assert classifier.should_flag(RiskLevel.MEDIUM) is False


class TestSuspiciousPatternDetector:
    """Tests for SuspiciousPatternDetector"""

    START = datetime(2025, 1, 1, 12, 0, 0)

    def _questions(self, n=10, spacing=60):
        return [self.START + timedelta(seconds=60 + i * spacing) for i in range(n)]

    def test_looking_away_before_four_of_ten_questions(self):
        questions = self._questions()
        events = [make_event("looking_away", q - timedelta(seconds=5)) for q in questions[:4]]

        analysis = SuspiciousPatternDetector().detect(events, questions)

        assert analysis.confidence == pytest.approx(0.4)
        assert analysis.is_suspicious is True
        assert analysis.reason == "User looked away before 4/10 questions"

    def test_window_edges_are_inclusive(self):
        questions = self._questions(n=2)
        events = [
            make_event("looking_away", questions[0] - timedelta(seconds=10)),
            make_event("looking_away", questions[1]),
        ]

        assert SuspiciousPatternDetector().detect(events, questions).confidence == 1.0

    def test_events_outside_window_do_not_count(self):
        questions = self._questions(n=2)
        events = [
            make_event("looking_away", questions[0] - timedelta(seconds=11)),
            make_event("looking_away", questions[1] + timedelta(seconds=1)),
            make_event("tab_switch", questions[1] - timedelta(seconds=1)),
        ]

        analysis = SuspiciousPatternDetector().detect(events, questions)
        assert analysis.confidence == 0
        assert analysis.is_suspicious is False

    def test_ratio_must_exceed_threshold(self):
        """3/10 is not more than 30%"""
        questions = self._questions()
        events = [make_event("looking_away", q - timedelta(seconds=1)) for q in questions[:3]]

        assert SuspiciousPatternDetector().detect(events, questions).is_suspicious is False

    def test_no_events(self):
        analysis = SuspiciousPatternDetector().detect([], self._questions())

        assert analysis.to_dict() == {
            "isSuspicious": False,
            "confidence": 0,
            "reason": "No violations detected",
            "violationsByQuestion": {}
        }

    def test_events_without_questions(self):
        analysis = SuspiciousPatternDetector().detect([make_event()], [])

        assert analysis.confidence == 0
        assert analysis.reason == "User looked away before 0/0 questions"
