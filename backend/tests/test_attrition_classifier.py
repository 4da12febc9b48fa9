"""
Tests for attrition_risk/services/ml/attrition_classifier.py - the neural network classifier.
"""
import threading

import numpy as np
import pytest

from attrition_risk.core.exceptions import ShapeError, TrainingCancelledError, TrainingError
from attrition_risk.services.ml.attrition_classifier import (
    AttritionClassifier,
    TrainedModel,
    load_model,
    save_model,
)
from attrition_risk.services.ml.feature_encoder import FeatureEncoder


@pytest.fixture
def encoded(training_records):
    encoder = FeatureEncoder()
    params, X = encoder.fit_transform(training_records)
    y = [1 if r["Attrition"] == "Yes" else 0 for r in training_records]
    return params, X, y


@pytest.fixture
def trained_model(encoded, fast_training_config):
    params, X, y = encoded
    return AttritionClassifier().train(X, y, params, fast_training_config)


class TestTrain:
    """Test classifier training runs."""

    def test_train_returns_model(self, trained_model, encoded, fast_training_config):
        params, X, _ = encoded

        assert isinstance(trained_model, TrainedModel)
        assert trained_model.n_features == params.width
        assert len(trained_model.history) == fast_training_config.epochs
        assert trained_model.training_samples + trained_model.validation_samples == len(X)
        assert trained_model.validation_samples == int(len(X) * fast_training_config.validation_split)

    def test_history_records_validation_metrics(self, trained_model):
        last = trained_model.history[-1]

        assert last.epoch == len(trained_model.history)
        assert np.isfinite(last.loss)
        assert 0.0 <= last.accuracy <= 1.0
        assert last.val_accuracy is not None

    def test_epoch_callback(self, encoded, fast_training_config):
        params, X, y = encoded
        seen = []

        AttritionClassifier().train(
            X, y, params, fast_training_config,
            on_epoch_end=lambda metrics, total: seen.append((metrics.epoch, total)),
        )

        assert seen == [(i, fast_training_config.epochs) for i in range(1, fast_training_config.epochs + 1)]

    def test_cancel_between_epochs(self, encoded, fast_training_config):
        params, X, y = encoded
        cancel = threading.Event()

        def stop_after_two(metrics, total):
            if metrics.epoch == 2:
                cancel.set()

        with pytest.raises(TrainingCancelledError, match="after 2 epoch"):
            AttritionClassifier().train(
                X, y, params, fast_training_config,
                on_epoch_end=stop_after_two,
                cancel_event=cancel,
            )

    def test_cancelled_is_training_error(self):
        assert issubclass(TrainingCancelledError, TrainingError)

    def test_empty_training_set(self, encoded, fast_training_config):
        params, _, _ = encoded

        with pytest.raises(TrainingError, match="empty"):
            AttritionClassifier().train([], [], params, fast_training_config)

    def test_label_count_mismatch(self, encoded, fast_training_config):
        params, X, y = encoded

        with pytest.raises(TrainingError, match="labels"):
            AttritionClassifier().train(X, y[:-1], params, fast_training_config)

    def test_width_mismatch(self, encoded, fast_training_config):
        params, X, y = encoded

        with pytest.raises(TrainingError, match="columns"):
            AttritionClassifier().train(X[:, :-1], y, params, fast_training_config)

    def test_non_finite_features(self, encoded, fast_training_config):
        params, X, y = encoded
        X = X.copy()
        X[0, 0] = np.inf

        with pytest.raises(TrainingError, match="non-finite"):
            AttritionClassifier().train(X, y, params, fast_training_config)

    def test_split_leaving_one_training_row(self, fast_training_config):
        X = np.arange(20, dtype=float).reshape(10, 2)
        y = np.array([0, 1] * 5)
        config = fast_training_config.model_copy(update={"validation_split": 0.9})

        X_train, X_val, y_train, y_val = AttritionClassifier._validation_split(X, y, config)

        assert len(y_train) == 1
        assert len(y_val) == 9

    def test_no_validation_split(self, encoded, fast_training_config):
        params, X, y = encoded
        config = fast_training_config.model_copy(update={"validation_split": 0.0})

        model = AttritionClassifier().train(X, y, params, config)

        assert model.validation_samples == 0
        assert model.history[-1].val_accuracy is None


class TestPredict:
    """Test inference on encoded vectors."""

    def test_probabilities_in_range(self, trained_model, encoded):
        _, X, _ = encoded

        probs = AttritionClassifier().predict(trained_model, X)

        assert probs.shape == (len(X),)
        assert np.all((probs >= 0.0) & (probs <= 1.0))

    def test_single_vector(self, trained_model, encoded):
        _, X, _ = encoded

        probs = AttritionClassifier().predict(trained_model, X[0])

        assert probs.shape == (1,)

    def test_wrong_width_raises_shape_error(self, trained_model, encoded):
        _, X, _ = encoded

        with pytest.raises(ShapeError):
            AttritionClassifier().predict(trained_model, X[:, :-2])

    def test_predictions_are_deterministic(self, trained_model, encoded):
        _, X, _ = encoded
        classifier = AttritionClassifier()

        np.testing.assert_array_equal(
            classifier.predict(trained_model, X[:5]),
            classifier.predict(trained_model, X[:5]),
        )


class TestEvaluate:
    def test_metric_keys(self, trained_model, encoded):
        _, X, y = encoded

        metrics = AttritionClassifier().evaluate(trained_model, X, y)

        for key in ("accuracy", "precision", "recall", "f1_score", "log_loss", "roc_auc"):
            assert key in metrics
        assert 0.0 <= metrics["accuracy"] <= 1.0

    def test_training_stores_metrics(self, trained_model):
        assert "accuracy" in trained_model.metrics


class TestPersistence:
    """Test pickle save/load of trained models."""

    def test_save_and_load(self, tmp_path, trained_model, encoded):
        _, X, _ = encoded
        path = save_model(trained_model, tmp_path / "models" / "model.pkl")

        loaded = load_model(path)

        assert loaded.model_id == trained_model.model_id
        assert loaded.encoding == trained_model.encoding
        np.testing.assert_allclose(
            AttritionClassifier().predict(loaded, X),
            AttritionClassifier().predict(trained_model, X),
        )

    def test_load_missing_returns_none(self, tmp_path):
        assert load_model(tmp_path / "nothing.pkl") is None
