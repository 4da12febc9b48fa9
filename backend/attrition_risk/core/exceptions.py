"""
Error kinds raised by the attrition risk pipeline.

Load, encode and train errors surface to the caller. Prediction errors are
recovered inside the prediction service by downgrading to rule-based scoring.
"""

from typing import Optional


class AttritionRiskError(Exception):
    """Base class for all pipeline errors."""


class DataLoadError(AttritionRiskError):
    """Dataset is unreadable or lacks a required column."""


class EncodingError(AttritionRiskError):
    """Encoding parameters cannot be fitted, or a vector has the wrong layout."""


class TrainingError(AttritionRiskError):
    """Training aborted. The previously published model (if any) stays in use."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class TrainingCancelledError(TrainingError):
    """Training was cancelled between epochs; no partial model is published."""


class ShapeError(AttritionRiskError):
    """Feature matrix width does not match the trained network."""


class PredictionError(AttritionRiskError):
    """Any other failure while running model inference."""
