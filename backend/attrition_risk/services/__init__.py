# Services Package
# Session-level orchestration over the data, ML and analytics services

from attrition_risk.services.attrition_prediction_service import AttritionPredictionService

__all__ = [
    "AttritionPredictionService",
]
