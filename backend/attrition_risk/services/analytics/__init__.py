# Analytics Services Package
# Risk banding, workforce aggregates and high-risk export

from attrition_risk.services.analytics.risk_reporter import RiskReporter, is_high_risk
from attrition_risk.services.analytics.workforce_analysis_service import (
    WorkforceAnalysisService,
    export_high_risk_csv,
)

__all__ = [
    "RiskReporter",
    "is_high_risk",
    "WorkforceAnalysisService",
    "export_high_risk_csv",
]
