from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from attrition_risk.schemas.employee import RawEmployeeInput


class RiskLevel(str, Enum):
    """Standard risk levels - 3 levels only for consistency"""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class RiskSource(str, Enum):
    """Where a risk score came from, so callers can render provenance."""
    MODEL = "MODEL"
    RULE = "RULE"


class RiskAssessment(BaseModel):
    """Result of a single prediction request. Created fresh, never persisted."""
    model_config = ConfigDict(frozen=True)

    score: float = Field(..., ge=0.0, le=1.0, description="Attrition probability (0-1)")
    level: RiskLevel
    source: RiskSource
    assessed_at: datetime = Field(default_factory=datetime.utcnow)


class PredictionRequest(BaseModel):
    """Request body for single-employee prediction."""
    employee_id: Optional[str] = None
    features: RawEmployeeInput


class PredictionResponse(BaseModel):
    employee_id: Optional[str] = None
    attrition_probability: float = Field(..., ge=0.0, le=1.0)
    risk_level: RiskLevel
    source: RiskSource
    high_risk: bool = Field(..., description="Probability at or above the configured risk threshold")
    predicted_at: datetime


class FeatureImportanceItem(BaseModel):
    feature: str
    importance: float = Field(..., ge=0.0)


class FeatureImportanceResponse(BaseModel):
    features: List[FeatureImportanceItem]
    estimated: bool = Field(..., description="False while the built-in default ranking is in use")
