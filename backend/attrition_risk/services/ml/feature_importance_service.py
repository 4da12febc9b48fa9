"""
Feature Importance Estimator

Model-agnostic sensitivity analysis: add Gaussian noise to one feature column
at a time and measure how far the model's output moves. Column scores are
summed per source field (all Department one-hot columns count towards
``Department``) so the published ranking names the HR fields the rule-based
scorer understands.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterator, Mapping, Optional, Sequence, Tuple

import numpy as np

from attrition_risk.core.config import settings
from attrition_risk.services.ml.attrition_classifier import AttritionClassifier, TrainedModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeatureImportance:
    """Ordered (feature, weight) pairs; weights are non-negative and sum to 1."""
    items: Tuple[Tuple[str, float], ...]
    estimated: bool = False

    @classmethod
    def from_weights(cls, weights: Mapping[str, float], estimated: bool = False) -> "FeatureImportance":
        """Normalize raw weights to sum to 1 and sort them descending."""
        cleaned = {name: max(0.0, float(w)) for name, w in weights.items()}
        total = sum(cleaned.values())
        if not cleaned or total <= 0:
            raise ValueError("Feature importance needs at least one positive weight")
        ranked = sorted(
            ((name, w / total) for name, w in cleaned.items()),
            key=lambda item: item[1],
            reverse=True,
        )
        return cls(items=tuple(ranked), estimated=estimated)

    def __iter__(self) -> Iterator[Tuple[str, float]]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def weight(self, feature: str) -> float:
        return dict(self.items).get(feature, 0.0)

    def as_dict(self) -> Dict[str, float]:
        return dict(self.items)

    @property
    def total(self) -> float:
        return sum(w for _, w in self.items)


# Initial ranking used until a trained model provides an estimate.
DEFAULT_FEATURE_IMPORTANCE = FeatureImportance.from_weights({
    "MonthlyIncome": 0.21,
    "OverTime": 0.19,
    "Age": 0.18,
    "JobSatisfaction": 0.15,
    "YearsAtCompany": 0.12,
    "EnvironmentSatisfaction": 0.09,
    "WorkLifeBalance": 0.08,
    "StockOptionLevel": 0.07,
    "Department": 0.06,
    "DistanceFromHome": 0.05,
})


class FeatureImportanceEstimator:
    """Perturbation-based importance for any model exposing predict()."""

    def __init__(
        self,
        classifier: Optional[AttritionClassifier] = None,
        noise_std: Optional[float] = None,
        random_state: Optional[int] = None,
    ):
        self.classifier = classifier or AttritionClassifier()
        self.noise_std = noise_std if noise_std is not None else settings.IMPORTANCE_NOISE_STD
        self.random_state = random_state if random_state is not None else settings.RANDOM_STATE

    def column_scores(self, model: TrainedModel, features: Sequence[Sequence[float]]) -> np.ndarray:
        """Mean absolute output change when each column gets N(0, noise_std) noise."""
        X = np.asarray(features, dtype=float)
        if X.ndim != 2 or X.shape[0] == 0:
            raise ValueError("Perturbation analysis needs a non-empty 2-D feature matrix")

        rng = np.random.default_rng(self.random_state)
        baseline = self.classifier.predict(model, X)

        scores = np.zeros(X.shape[1], dtype=float)
        for i in range(X.shape[1]):
            perturbed = X.copy()
            perturbed[:, i] += rng.normal(0.0, self.noise_std, size=X.shape[0])
            scores[i] = float(np.mean(np.abs(baseline - self.classifier.predict(model, perturbed))))
        return scores

    def estimate(
        self,
        model: Optional[TrainedModel],
        features: Sequence[Sequence[float]],
        fallback: Optional[FeatureImportance] = None,
    ) -> FeatureImportance:
        """
        Estimate importance for ``model`` on ``features``.

        Never returns an empty set: on any failure the ``fallback`` (last
        known importance) is returned, or the default ranking if none.
        """
        fallback = fallback or DEFAULT_FEATURE_IMPORTANCE
        if model is None:
            logger.warning("No trained model available - keeping previous feature importance")
            return fallback

        try:
            scores = self.column_scores(model, features)
        except Exception as e:
            logger.warning(f"Perturbation importance failed, keeping previous values: {e}")
            return fallback

        by_source: Dict[str, float] = {}
        for source, score in zip(model.encoding.feature_sources, scores):
            by_source[source] = by_source.get(source, 0.0) + float(score)

        try:
            importance = FeatureImportance.from_weights(by_source, estimated=True)
        except ValueError:
            logger.warning("Model output is insensitive to every feature - keeping previous importance")
            return fallback

        top = ", ".join(f"{name}={w:.3f}" for name, w in importance.items[:3])
        logger.info(f"Estimated feature importance over {len(importance)} fields (top: {top})")
        return importance
