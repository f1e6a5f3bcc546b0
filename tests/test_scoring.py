"""Tests for risk score and resolution percentage."""
import pytest

from sentinel.models.enums import RiskLevel, ReportSentiment
from sentinel.services.scoring import risk_score, resolution_percentage, is_high_risk


class TestRiskScore:

    def test_known_values(self):
        assert risk_score(RiskLevel.CRITICAL, ReportSentiment.CRITICAL) == 100
        assert risk_score(RiskLevel.LOW, ReportSentiment.ROUTINE) == 10
        assert risk_score(RiskLevel.HIGH, ReportSentiment.SERIOUS) == 70
        assert risk_score(RiskLevel.MEDIUM, ReportSentiment.CAUTIONARY) == 35

    @pytest.mark.parametrize("level", list(RiskLevel))
    @pytest.mark.parametrize("sentiment", list(ReportSentiment))
    def test_score_is_bounded_integer(self, level, sentiment):
        """
        INVARIANT: every (risk level, sentiment) pair scores an integer in 0..100.
        """
        score = risk_score(level, sentiment)
        assert isinstance(score, int)
        assert 0 <= score <= 100

    def test_monotonic_in_risk_level(self):
        for sentiment in ReportSentiment:
            scores = [risk_score(level, sentiment) for level in RiskLevel]
            assert scores == sorted(scores)

    def test_monotonic_in_sentiment(self):
        for level in RiskLevel:
            # ReportSentiment is declared most urgent first
            scores = [risk_score(level, sentiment) for sentiment in ReportSentiment]
            assert scores == sorted(scores, reverse=True)

    def test_accepts_plain_strings(self):
        assert risk_score("High", "Serious") == 70

    def test_high_risk_levels(self):
        assert is_high_risk(RiskLevel.CRITICAL)
        assert is_high_risk("High")
        assert not is_high_risk(RiskLevel.MEDIUM)
        assert not is_high_risk(RiskLevel.LOW)


class TestResolutionPercentage:

    def test_empty_next_steps_is_zero(self):
        """
        INVARIANT: no next steps means 0%, never a divide error.
        """
        assert resolution_percentage([], []) == 0
        assert resolution_percentage(["Stale step"], []) == 0

    def test_one_of_three(self):
        assert resolution_percentage(["A"], ["A", "B", "C"]) == 33

    def test_two_of_three_rounds_up(self):
        assert resolution_percentage(["A", "B"], ["A", "B", "C"]) == 67

    def test_half_rounds_up(self):
        steps = [str(i) for i in range(8)]
        assert resolution_percentage(["0"], steps) == 13

    def test_all_done(self):
        assert resolution_percentage(["C", "A", "B"], ["A", "B", "C"]) == 100

    def test_unknown_completed_steps_are_ignored(self):
        assert resolution_percentage(["A", "Z"], ["A", "B"]) == 50
