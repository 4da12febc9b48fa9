"""
Rule-Based Scorer

Deterministic fallback used when no classifier is trained or inference fails.
Each known HR field has a fixed band function mapping its raw value to a
[0, 1] sub-score; the overall score is the importance-weighted average of the
sub-scores, clamped to [0.05, 0.95].
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from attrition_risk.schemas.employee import EmployeeLike, RawEmployeeInput, as_employee
from attrition_risk.services.ml.feature_importance_service import (
    DEFAULT_FEATURE_IMPORTANCE,
    FeatureImportance,
)

MIN_SCORE = 0.05
MAX_SCORE = 0.95
NEUTRAL_SCORE = 0.5


def _income_band(income: float) -> float:
    if income < 4000:
        return 0.9
    if income < 6000:
        return 0.6
    if income < 8000:
        return 0.3
    return 0.1


def _overtime_band(overtime: str) -> float:
    return 0.8 if overtime.strip().lower() == "yes" else 0.1


def _age_band(age: float) -> float:
    if age < 28:
        return 0.8
    if age < 35:
        return 0.5
    if age < 45:
        return 0.3
    return 0.1


def _job_satisfaction_band(level: float) -> float:
    if level <= 2:
        return 0.8
    if level == 3:
        return 0.4
    return 0.1


def _tenure_band(years: float) -> float:
    if years < 2:
        return 0.7
    if years < 5:
        return 0.4
    return 0.2


def _environment_band(level: float) -> float:
    return 0.6 if level <= 2 else 0.2


def _work_life_band(level: float) -> float:
    return 0.5 if level <= 2 else 0.2


def _stock_option_band(level: float) -> float:
    if level == 0:
        return 0.6
    if level == 1:
        return 0.3
    return 0.1


def _department_band(department: str) -> float:
    if department == "Sales":
        return 0.6
    if department == "Research & Development":
        return 0.3
    return 0.1


def _distance_band(distance: float) -> float:
    if distance > 15:
        return 0.4
    if distance > 8:
        return 0.2
    return 0.1


# HR field -> band function. Fields without an entry are ignored by the scorer.
RULES: Dict[str, Callable] = {
    "MonthlyIncome": _income_band,
    "OverTime": _overtime_band,
    "Age": _age_band,
    "JobSatisfaction": _job_satisfaction_band,
    "YearsAtCompany": _tenure_band,
    "EnvironmentSatisfaction": _environment_band,
    "WorkLifeBalance": _work_life_band,
    "StockOptionLevel": _stock_option_band,
    "Department": _department_band,
    "DistanceFromHome": _distance_band,
}


@dataclass(frozen=True)
class RuleContribution:
    feature: str
    value: object
    sub_score: float
    weight: float

    @property
    def weighted(self) -> float:
        return self.sub_score * self.weight


class RuleBasedScorer:
    """Stateless scorer; identical inputs and weights always give the same score."""

    def sub_score(self, feature: str, employee: RawEmployeeInput) -> Optional[float]:
        rule = RULES.get(feature)
        if rule is None:
            return None
        value = employee.get_field(feature)
        if value is None:
            return None
        return rule(value)

    def explain(
        self,
        record: EmployeeLike,
        importance: Optional[FeatureImportance] = None,
    ) -> List[RuleContribution]:
        """Per-feature sub-scores for the features that can be scored, strongest first."""
        employee = as_employee(record)
        importance = importance or DEFAULT_FEATURE_IMPORTANCE

        contributions = []
        for feature, weight in importance:
            sub_score = self.sub_score(feature, employee)
            if sub_score is None:
                continue
            contributions.append(RuleContribution(
                feature=feature,
                value=employee.get_field(feature),
                sub_score=sub_score,
                weight=weight,
            ))
        contributions.sort(key=lambda c: c.weighted, reverse=True)
        return contributions

    def score(
        self,
        record: EmployeeLike,
        importance: Optional[FeatureImportance] = None,
    ) -> float:
        """
        Importance-weighted average of sub-scores, clamped to [0.05, 0.95].

        Missing attributes contribute neither sub-score nor weight. When no
        attribute can be scored the neutral 0.5 is returned.
        """
        contributions = self.explain(record, importance)
        total_weight = sum(c.weight for c in contributions)
        if total_weight <= 0:
            risk = NEUTRAL_SCORE
        else:
            risk = sum(c.weighted for c in contributions) / total_weight
        return min(MAX_SCORE, max(MIN_SCORE, risk))
