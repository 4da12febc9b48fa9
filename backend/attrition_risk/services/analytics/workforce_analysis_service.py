"""
Workforce Analysis Service

Chart-ready aggregate tables over the loaded dataset (attrition rate by
department, age and income bracket, plus distributions) and the CSV export
of flagged high-risk employees. These helpers read records and scores; they
never take part in scoring.
"""

import csv
import io
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple, TextIO

import numpy as np
import pandas as pd

from attrition_risk.schemas.employee import EmployeeRecord
from attrition_risk.schemas.risk import RiskAssessment
from attrition_risk.services.ml.rule_based_scorer import RuleContribution

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    "EmployeeID", "Department", "JobRole", "Age", "MonthlyIncome", "RiskScore", "RecommendedAction",
]

AGE_GROUPS = ["Under 30", "30-39", "40-49", "50+"]
INCOME_GROUPS = ["Under $3k", "$3k-$5k", "$5k-$8k", "Over $8k"]
AGE_HISTOGRAM_BINS = ["18-25", "26-30", "31-35", "36-40", "41-45", "46-50", "51-55", "56-60", "60+"]
WORK_LIFE_LABELS = {1: "Poor", 2: "Average", 3: "Good", 4: "Excellent"}
EDUCATION_LABELS = {1: "Below College", 2: "College", 3: "Bachelor", 4: "Master", 5: "Doctor"}

# Strongest rule-based driver -> recommended retention action
RECOMMENDED_ACTIONS = {
    "MonthlyIncome": "Review compensation package and consider salary adjustment",
    "OverTime": "Review current workload and consider redistributing work to reduce overtime",
    "Age": "Assign a mentor and discuss early-career development path",
    "JobSatisfaction": "Schedule one-on-one meeting to discuss job satisfaction and concerns",
    "YearsAtCompany": "Strengthen onboarding support and check in during first years",
    "EnvironmentSatisfaction": "Address team environment concerns raised by the employee",
    "WorkLifeBalance": "Discuss flexible working arrangements to improve work-life balance",
    "StockOptionLevel": "Consider long-term incentives such as stock options",
    "Department": "Review department-level retention programme",
    "DistanceFromHome": "Offer remote or hybrid work to reduce commute burden",
}
DEFAULT_ACTION = "Continue regular check-ins and maintain positive work environment"


def age_group(age: float) -> str:
    if age < 30:
        return "Under 30"
    elif age < 40:
        return "30-39"
    elif age < 50:
        return "40-49"
    return "50+"


def income_group(income: float) -> str:
    if income < 3000:
        return "Under $3k"
    elif income < 5000:
        return "$3k-$5k"
    elif income < 8000:
        return "$5k-$8k"
    return "Over $8k"


def age_histogram_bin(age: float) -> Optional[str]:
    if age < 18:
        return None
    if age <= 25:
        return "18-25"
    upper_bounds = [(30, "26-30"), (35, "31-35"), (40, "36-40"), (45, "41-45"),
                    (50, "46-50"), (55, "51-55"), (60, "56-60")]
    for bound, label in upper_bounds:
        if age <= bound:
            return label
    return "60+"


def recommended_action(drivers: Sequence[RuleContribution]) -> str:
    """Action for the strongest driver, or a maintenance action when none stands out."""
    for driver in drivers:
        if driver.sub_score >= 0.5 and driver.feature in RECOMMENDED_ACTIONS:
            return RECOMMENDED_ACTIONS[driver.feature]
    return DEFAULT_ACTION


class WorkforceAnalysisService:
    """Aggregations over a DataFrame of records keyed by HR column name."""

    def __init__(self, df: pd.DataFrame):
        self.df = df
        self.attrited = df["Attrition"] == "Yes" if "Attrition" in df.columns else pd.Series(False, index=df.index)

    def summary(self) -> Dict[str, Any]:
        """Headline statistics: attrition rate, averages and most common marital status."""
        total = len(self.df)
        if total == 0:
            return {"total_employees": 0}

        attrition_count = int(self.attrited.sum())
        marital_counts = self.df["MaritalStatus"].dropna().value_counts()

        return {
            "total_employees": total,
            "attrition_count": attrition_count,
            "attrition_rate": round(attrition_count / total * 100, 1),
            "average_age": _rounded_mean(self.df["Age"], 0),
            "average_monthly_income": _rounded_mean(self.df["MonthlyIncome"], 0),
            "average_tenure": _rounded_mean(self.df["YearsAtCompany"].fillna(0), 1),
            "average_job_satisfaction": _rounded_mean(self.df["JobSatisfaction"].fillna(0), 1),
            "overtime_rate": round(float((self.df["OverTime"] == "Yes").sum()) / total * 100, 1),
            "marital_status_counts": {str(k): int(v) for k, v in marital_counts.items()},
            "most_common_marital_status": str(marital_counts.index[0]) if len(marital_counts) else "Unknown",
        }

    def perform_comprehensive_analysis(self) -> Dict[str, List[Dict[str, Any]]]:
        """Attrition rate by department, age group and income group."""
        department_stats = []
        departments = self.df["Department"].fillna("Unknown")
        for dept in dict.fromkeys(departments):
            mask = departments == dept
            department_stats.append({
                "department": dept,
                "attrition_rate": _rate(self.attrited[mask]),
                "count": int(mask.sum()),
            })

        ages = self.df["Age"].dropna()
        age_labels = ages.map(age_group)
        age_stats = [
            {
                "group": group,
                "attrition_rate": _rate(self.attrited.loc[age_labels.index[age_labels == group]]),
                "total": int((age_labels == group).sum()),
            }
            for group in AGE_GROUPS
        ]

        incomes = self.df["MonthlyIncome"].dropna()
        income_labels = incomes.map(income_group)
        income_stats = [
            {
                "group": group,
                "attrition_rate": _rate(self.attrited.loc[income_labels.index[income_labels == group]]),
                "total": int((income_labels == group).sum()),
            }
            for group in INCOME_GROUPS
        ]

        return {
            "department_stats": department_stats,
            "age_groups": age_stats,
            "income_groups": income_stats,
        }

    def age_distribution(self) -> Dict[str, int]:
        counts = {label: 0 for label in AGE_HISTOGRAM_BINS}
        for age in self.df["Age"].dropna():
            label = age_histogram_bin(age)
            if label is not None:
                counts[label] += 1
        return counts

    def work_life_distribution(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for level in self.df["WorkLifeBalance"].dropna():
            label = WORK_LIFE_LABELS.get(int(level))
            if label is not None:
                counts[label] = counts.get(label, 0) + 1
        return counts

    def education_distribution(self) -> Dict[str, int]:
        counts = {label: 0 for label in EDUCATION_LABELS.values()}
        for level in self.df["Education"].dropna():
            label = EDUCATION_LABELS.get(int(level))
            if label is not None:
                counts[label] += 1
        return counts


def export_high_risk_csv(
    scored: Sequence[Tuple[EmployeeRecord, RiskAssessment, str]],
    threshold: float,
    destination: Optional[TextIO] = None,
) -> str:
    """
    Write flagged employees (score >= threshold) as CSV, highest risk first.

    ``scored`` holds (record, assessment, recommended action) triples.
    Returns the CSV text; also writes it to ``destination`` when given.
    """
    flagged = sorted(
        (item for item in scored if item[1].score >= threshold),
        key=lambda item: item[1].score,
        reverse=True,
    )

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(EXPORT_COLUMNS)
    for record, assessment, action in flagged:
        writer.writerow([
            record.employee_id or "",
            record.department or "",
            record.job_role or "",
            _format_number(record.age),
            _format_number(record.monthly_income),
            f"{assessment.score:.3f}",
            action,
        ])

    text = buffer.getvalue()
    if destination is not None:
        destination.write(text)
    logger.info(f"Exported {len(flagged)} high-risk employees (threshold {threshold:.2f})")
    return text


def _rate(flags: pd.Series) -> float:
    if len(flags) == 0:
        return 0.0
    return round(float(flags.sum()) / len(flags) * 100, 1)


def _rounded_mean(series: pd.Series, digits: int) -> Optional[float]:
    values = pd.to_numeric(series, errors="coerce").dropna()
    if values.empty:
        return None
    return round(float(np.mean(values)), digits)


def _format_number(value: Optional[float]) -> str:
    if value is None:
        return ""
    return str(int(value)) if float(value).is_integer() else f"{value:.2f}"
