"""Risk scoring - numeric signals derived from a case's report and progress."""
import math
from typing import Iterable

from sentinel.models.enums import RiskLevel, ReportSentiment

MAX_SCORE = 100

RISK_WEIGHTS = {
    RiskLevel.CRITICAL: 60,
    RiskLevel.HIGH: 40,
    RiskLevel.MEDIUM: 20,
    RiskLevel.LOW: 10,
}

SENTIMENT_WEIGHTS = {
    ReportSentiment.CRITICAL: 40,
    ReportSentiment.SERIOUS: 30,
    ReportSentiment.CAUTIONARY: 15,
    ReportSentiment.ROUTINE: 0,
}

HIGH_RISK_LEVELS = (RiskLevel.HIGH, RiskLevel.CRITICAL)


def risk_score(risk_level: RiskLevel, sentiment: ReportSentiment) -> int:
    """
    Map a (risk level, sentiment) pair onto 0..100.

    score = min(risk weight + sentiment weight, 100); monotonic in both inputs.
    """
    score = RISK_WEIGHTS[RiskLevel(risk_level)] + SENTIMENT_WEIGHTS[ReportSentiment(sentiment)]
    return min(score, MAX_SCORE)


def resolution_percentage(completed_steps: Iterable[str], next_steps: Iterable[str]) -> int:
    """
    Share of recommended next steps marked complete, as an integer percentage.

    Returns 0 when there are no next steps. Completed entries that are not
    current next steps are ignored, so the result never exceeds 100.
    """
    steps = set(next_steps)
    if not steps:
        return 0

    done = len(steps.intersection(completed_steps))
    # Round half up; round() would round 12.5 down to 12
    return int(math.floor(100 * done / len(steps) + 0.5))


def is_high_risk(risk_level: RiskLevel) -> bool:
    return RiskLevel(risk_level) in HIGH_RISK_LEVELS
