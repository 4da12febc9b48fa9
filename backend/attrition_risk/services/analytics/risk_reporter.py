"""
Risk Threshold and Level Helpers

Maps a continuous attrition score onto the LOW/MEDIUM/HIGH bands and tags the
result with where the score came from.
"""

from typing import Optional

from attrition_risk.core.config import settings
from attrition_risk.schemas.risk import RiskAssessment, RiskLevel, RiskSource


class RiskReporter:
    """Pure and total over [0, 1]; scores outside that range are clamped."""

    def __init__(
        self,
        high_threshold: Optional[float] = None,
        medium_threshold: Optional[float] = None,
    ):
        self.high_threshold = high_threshold if high_threshold is not None else settings.HIGH_RISK_THRESHOLD
        self.medium_threshold = medium_threshold if medium_threshold is not None else settings.MEDIUM_RISK_THRESHOLD
        if self.medium_threshold >= self.high_threshold:
            raise ValueError("medium_threshold must be lower than high_threshold")

    def risk_level(self, score: float) -> RiskLevel:
        if score >= self.high_threshold:
            return RiskLevel.HIGH
        elif score >= self.medium_threshold:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW

    def classify(self, score: float, source: RiskSource = RiskSource.MODEL) -> RiskAssessment:
        score = min(1.0, max(0.0, float(score)))
        return RiskAssessment(score=score, level=self.risk_level(score), source=source)


def is_high_risk(probability: float, threshold: Optional[float] = None) -> bool:
    """Binary high/low flag at the configurable cutoff, independent of the 3 bands."""
    cutoff = settings.RISK_THRESHOLD if threshold is None else threshold
    return probability >= cutoff


# Band ordering, used for monotonicity checks and sorting
LEVEL_RANK = {
    RiskLevel.LOW: 0,
    RiskLevel.MEDIUM: 1,
    RiskLevel.HIGH: 2,
}
