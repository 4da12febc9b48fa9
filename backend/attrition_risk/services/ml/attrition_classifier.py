import logging
import pickle
import threading
import uuid
import warnings
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
from sklearn.exceptions import ConvergenceWarning
from sklearn.metrics import (
    accuracy_score, precision_score, recall_score, f1_score,
    roc_auc_score, log_loss,
)
from sklearn.model_selection import train_test_split
from sklearn.neural_network import MLPClassifier

from attrition_risk.core.exceptions import (
    PredictionError,
    ShapeError,
    TrainingCancelledError,
    TrainingError,
)
from attrition_risk.schemas.training import EpochMetrics, TrainingConfig
from attrition_risk.services.ml.feature_encoder import EncodingParameters

logger = logging.getLogger(__name__)

CLASSES = np.array([0, 1])

EpochCallback = Callable[[EpochMetrics, int], None]


@dataclass(frozen=True)
class TrainedModel:
    """
    Network weights plus everything needed to reuse them.

    Published only after a complete training run and never mutated afterwards,
    so concurrent predictions can share one instance without locking.
    """
    network: MLPClassifier
    encoding: EncodingParameters
    history: Tuple[EpochMetrics, ...]
    config: TrainingConfig
    training_samples: int
    validation_samples: int
    metrics: Dict[str, float] = field(default_factory=dict)
    model_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    trained_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def n_features(self) -> int:
        return self.encoding.width


class AttritionClassifier:
    """Feed-forward binary classifier (ReLU hidden layers, sigmoid output, Adam)."""

    def train(
        self,
        features: Sequence[Sequence[float]],
        labels: Sequence[int],
        encoding: EncodingParameters,
        config: Optional[TrainingConfig] = None,
        on_epoch_end: Optional[EpochCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> TrainedModel:
        """
        Train a new network one epoch at a time.

        ``on_epoch_end(metrics, total_epochs)`` runs after every epoch.
        Setting ``cancel_event`` stops training before the next epoch and
        raises TrainingCancelledError; the partial network is discarded.
        """
        config = config or TrainingConfig()

        try:
            X = np.asarray(features, dtype=float)
            y = np.asarray(labels, dtype=int)
        except (TypeError, ValueError) as e:
            raise TrainingError(f"Malformed training input: {e}", cause=e) from e

        if X.size == 0 or len(y) == 0:
            raise TrainingError("Cannot train on an empty training set")
        if X.ndim != 2:
            raise TrainingError(f"Training features must be a 2-D matrix, got {X.ndim} dimension(s)")
        if X.shape[0] != y.shape[0]:
            raise TrainingError(f"Got {X.shape[0]} feature rows but {y.shape[0]} labels")
        if X.shape[1] != encoding.width:
            raise TrainingError(
                f"Training features have {X.shape[1]} columns, encoding expects {encoding.width}"
            )
        if not np.all(np.isfinite(X)):
            raise TrainingError("Training features contain non-finite values")
        if not set(np.unique(y)).issubset({0, 1}):
            raise TrainingError("Labels must be 0 or 1")

        X_train, X_val, y_train, y_val = self._validation_split(X, y, config)
        logger.info(
            f"Training network {tuple(config.hidden_layer_sizes)} for {config.epochs} epochs: "
            f"train={len(y_train)} | val={len(y_val)}"
        )

        network = MLPClassifier(
            hidden_layer_sizes=tuple(config.hidden_layer_sizes),
            activation="relu",
            solver="adam",
            learning_rate_init=config.learning_rate,
            batch_size=min(config.batch_size, len(y_train)),
            random_state=config.random_state,
            shuffle=True,
        )

        history: List[EpochMetrics] = []
        for epoch in range(1, config.epochs + 1):
            if cancel_event is not None and cancel_event.is_set():
                raise TrainingCancelledError(f"Training cancelled after {epoch - 1} epoch(s)")

            try:
                with warnings.catch_warnings():
                    warnings.simplefilter("ignore", category=ConvergenceWarning)
                    network.partial_fit(X_train, y_train, classes=CLASSES)
            except ValueError as e:
                raise TrainingError(f"Training failed at epoch {epoch}: {e}", cause=e) from e

            loss = float(network.loss_)
            if not np.isfinite(loss):
                raise TrainingError(f"Non-finite loss at epoch {epoch}")

            metrics = EpochMetrics(
                epoch=epoch,
                loss=loss,
                accuracy=float(accuracy_score(y_train, network.predict(X_train))),
            )
            if len(y_val):
                val_probs = network.predict_proba(X_val)[:, 1]
                metrics.val_loss = float(log_loss(y_val, val_probs, labels=CLASSES))
                metrics.val_accuracy = float(accuracy_score(y_val, (val_probs >= 0.5).astype(int)))

            history.append(metrics)
            logger.debug(
                f"Epoch {epoch}/{config.epochs}: loss={metrics.loss:.4f} acc={metrics.accuracy:.3f}"
                + (f" val_acc={metrics.val_accuracy:.3f}" if metrics.val_accuracy is not None else "")
            )
            if on_epoch_end is not None:
                on_epoch_end(metrics, config.epochs)

        model = TrainedModel(
            network=network,
            encoding=encoding,
            history=tuple(history),
            config=config,
            training_samples=len(y_train),
            validation_samples=len(y_val),
        )
        eval_X, eval_y = (X_val, y_val) if len(y_val) else (X_train, y_train)
        model.metrics.update(self.evaluate(model, eval_X, eval_y, threshold=config.risk_threshold))

        final = history[-1]
        logger.info(f"Training complete: loss={final.loss:.4f} accuracy={final.accuracy:.3f}")
        return model

    @staticmethod
    def _validation_split(
        X: np.ndarray, y: np.ndarray, config: TrainingConfig
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        n_val = int(len(y) * config.validation_split)
        if n_val < 1 or len(y) - n_val < 1:
            return X, np.empty((0, X.shape[1])), y, np.empty(0, dtype=int)

        # Stratifying needs at least one row per class on both sides
        counts = np.bincount(y, minlength=2)
        stratify = y if counts.min() >= 2 and n_val >= 2 and len(y) - n_val >= 2 else None
        try:
            X_train, X_val, y_train, y_val = train_test_split(
                X, y,
                test_size=n_val,
                random_state=config.random_state,
                stratify=stratify,
            )
        except ValueError as e:
            raise TrainingError(f"Could not split off {n_val} validation rows: {e}", cause=e) from e
        return X_train, X_val, y_train, y_val

    def predict(self, model: TrainedModel, features: Sequence[Sequence[float]]) -> np.ndarray:
        """Per-record attrition probabilities in [0, 1]."""
        try:
            X = np.asarray(features, dtype=float)
        except (TypeError, ValueError) as e:
            raise ShapeError(f"Features are not a numeric matrix: {e}") from e

        if X.ndim == 1:
            X = X.reshape(1, -1)
        if X.ndim != 2 or X.shape[1] != model.n_features:
            raise ShapeError(
                f"Expected feature vectors of width {model.n_features}, got shape {X.shape}"
            )
        if X.shape[0] == 0:
            return np.empty(0, dtype=float)

        try:
            probs = model.network.predict_proba(X)[:, 1]
        except Exception as e:
            raise PredictionError(f"Model inference failed: {e}") from e

        return np.clip(probs, 0.0, 1.0)

    def evaluate(
        self,
        model: TrainedModel,
        features: Sequence[Sequence[float]],
        labels: Sequence[int],
        threshold: float = 0.5,
    ) -> Dict[str, float]:
        """Classification metrics at ``threshold`` plus threshold-free AUC/log-loss."""
        y = np.asarray(labels, dtype=int)
        probs = self.predict(model, features)
        if len(y) == 0:
            return {}
        preds = (probs >= threshold).astype(int)

        metrics = {
            "accuracy": float(accuracy_score(y, preds)),
            "precision": float(precision_score(y, preds, zero_division=0)),
            "recall": float(recall_score(y, preds, zero_division=0)),
            "f1_score": float(f1_score(y, preds, zero_division=0)),
            "log_loss": float(log_loss(y, probs, labels=CLASSES)),
        }
        if len(np.unique(y)) == 2:
            metrics["roc_auc"] = float(roc_auc_score(y, probs))
        return metrics


def save_model(model: TrainedModel, path: Path) -> Path:
    """Pickle a trained model (network, encoding and history) to ``path``."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as f:
        pickle.dump(model, f)
    logger.info(f"Saved model {model.model_id} to {path}")
    return path


def load_model(path: Path) -> Optional[TrainedModel]:
    """Load a pickled model; returns None when no artifact exists."""
    path = Path(path)
    if not path.exists():
        return None
    with open(path, "rb") as f:
        model = pickle.load(f)
    if not isinstance(model, TrainedModel):
        raise TypeError(f"{path} does not contain a TrainedModel")
    return model
