# ML Services Package
# Feature encoding, classifier training, importance estimation and rule-based scoring

from attrition_risk.services.ml.feature_encoder import FeatureEncoder, EncodingParameters
from attrition_risk.services.ml.attrition_classifier import AttritionClassifier, TrainedModel
from attrition_risk.services.ml.feature_importance_service import (
    FeatureImportance,
    FeatureImportanceEstimator,
    DEFAULT_FEATURE_IMPORTANCE,
)
from attrition_risk.services.ml.rule_based_scorer import RuleBasedScorer

__all__ = [
    # Encoding
    "FeatureEncoder",
    "EncodingParameters",
    # Classifier
    "AttritionClassifier",
    "TrainedModel",
    # Importance
    "FeatureImportance",
    "FeatureImportanceEstimator",
    "DEFAULT_FEATURE_IMPORTANCE",
    # Fallback
    "RuleBasedScorer",
]
