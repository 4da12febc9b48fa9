"""
Tests for attrition_risk/services/attrition_prediction_service.py - the session facade.
"""
import numpy as np
import pytest

from attrition_risk.core.exceptions import TrainingCancelledError, TrainingError
from attrition_risk.schemas.risk import RiskLevel, RiskSource
from attrition_risk.schemas.training import TrainingConfig, TrainingStatus
from attrition_risk.services.attrition_prediction_service import AttritionPredictionService
from attrition_risk.services.ml.feature_importance_service import DEFAULT_FEATURE_IMPORTANCE


@pytest.fixture
def service(tmp_path):
    return AttritionPredictionService(models_dir=tmp_path)


class TestPredictWithoutModel:
    """Before training every prediction comes from the rule-based scorer."""

    def test_rule_based_prediction(self, service, sample_high_risk_employee):
        assessment = service.predict_attrition(sample_high_risk_employee)

        assert assessment.source == RiskSource.RULE
        assert assessment.level == RiskLevel.HIGH
        assert assessment.score == pytest.approx(0.836, abs=1e-3)

    def test_default_importance_in_use(self, service):
        assert service.feature_importance is DEFAULT_FEATURE_IMPORTANCE
        assert not service.is_model_trained

    def test_is_high_risk_uses_default_threshold(self, service, sample_low_risk_employee):
        assessment = service.predict_attrition(sample_low_risk_employee)

        assert not service.is_high_risk(assessment)


class TestTraining:
    """Test training runs and the published model."""

    def test_train_publishes_model(self, trained_service, fast_training_config):
        assert trained_service.is_model_trained
        assert trained_service.feature_importance.estimated
        assert trained_service.feature_importance.total == pytest.approx(1.0, abs=1e-6)

        progress = trained_service.training_progress
        assert progress.status == TrainingStatus.COMPLETED
        assert progress.epoch == fast_training_config.epochs
        assert progress.percent == 100

    def test_model_prediction_after_training(self, trained_service, sample_high_risk_employee):
        assessment = trained_service.predict_attrition(sample_high_risk_employee)

        assert assessment.source == RiskSource.MODEL
        assert 0.0 <= assessment.score <= 1.0

    def test_untrainable_rows_excluded(self, service, training_records, fast_training_config):
        rows = training_records + [{"EmployeeID": "x1", "Age": None, "Attrition": "Yes"}]
        service.load_records(rows)

        model = service.train(fast_training_config)

        assert model.training_samples + model.validation_samples == len(training_records)

    def test_progress_callback(self, service, training_records, fast_training_config):
        service.load_records(training_records)
        snapshots = []

        service.train(fast_training_config, progress_callback=snapshots.append)

        assert [p.epoch for p in snapshots] == list(range(1, fast_training_config.epochs + 1))
        assert all(p.status == TrainingStatus.RUNNING for p in snapshots)
        assert snapshots[-1].latest is not None

    def test_empty_dataset_raises(self, service, fast_training_config):
        with pytest.raises(TrainingError, match="empty"):
            service.train(fast_training_config)

        assert service.training_progress.status == TrainingStatus.FAILED
        assert not service.is_model_trained

    def test_failed_retrain_keeps_previous_model(self, trained_service, fast_training_config):
        previous = trained_service.model
        previous_importance = trained_service.feature_importance
        trained_service.load_records([{"Age": None, "Attrition": "Yes"}])

        with pytest.raises(TrainingError):
            trained_service.train(fast_training_config)

        assert trained_service.model is previous
        assert trained_service.feature_importance is previous_importance

    def test_cancel_training(self, service, training_records, fast_training_config):
        service.load_records(training_records)

        def cancel_at_second_epoch(progress):
            if progress.epoch == 2:
                assert service.cancel_training()

        with pytest.raises(TrainingCancelledError):
            service.train(fast_training_config, progress_callback=cancel_at_second_epoch)

        assert service.training_progress.status == TrainingStatus.CANCELLED
        assert service.model is None

    def test_cancel_when_idle(self, service):
        assert service.cancel_training() is False

    def test_concurrent_run_rejected(self, service, training_records, fast_training_config):
        service.load_records(training_records)

        def start_second_run(progress):
            service.train(fast_training_config)

        with pytest.raises(TrainingError, match="already in progress"):
            service.train(fast_training_config, progress_callback=start_second_run)

        assert service.model is None

    def test_large_validation_split_on_small_dataset(self, service):
        service.load_records([
            {"Age": 25 + i, "MonthlyIncome": 3000 + 500 * i, "Attrition": "Yes" if i % 2 else "No"}
            for i in range(10)
        ])
        config = TrainingConfig(epochs=2, validation_split=0.9, hidden_layer_sizes=[4], random_state=0)

        model = service.train(config)

        assert model.training_samples == 1
        assert model.validation_samples == 9
        assert service.training_progress.status == TrainingStatus.COMPLETED

    def test_unexpected_error_becomes_training_error(self, service, training_records, fast_training_config):
        service.load_records(training_records)

        def broken_callback(progress):
            raise RuntimeError("progress sink unavailable")

        with pytest.raises(TrainingError, match="progress sink unavailable") as exc_info:
            service.train(fast_training_config, progress_callback=broken_callback)

        assert isinstance(exc_info.value.cause, RuntimeError)
        assert service.training_progress.status == TrainingStatus.FAILED
        assert service.cancel_training() is False
        assert service.model is None

    @pytest.mark.asyncio
    async def test_train_async(self, service, training_records, fast_training_config):
        service.load_records(training_records)

        model = await service.train_async(fast_training_config)

        assert service.model is model
        assert service.training_progress.status == TrainingStatus.COMPLETED


class TestFallback:
    """Inference failures fall back to the rule-based scorer."""

    def test_shape_mismatch_uses_rules(self, trained_service, sample_high_risk_employee, monkeypatch):
        width = trained_service.model.n_features
        monkeypatch.setattr(
            trained_service.encoder, "transform",
            lambda record, params: np.zeros(width + 3),
        )

        assessment = trained_service.predict_attrition(sample_high_risk_employee)

        assert assessment.source == RiskSource.RULE
        assert assessment.level == RiskLevel.HIGH

    def test_batch_scoring_falls_back_per_record(self, trained_service, monkeypatch):
        width = trained_service.model.n_features
        monkeypatch.setattr(
            trained_service.encoder, "transform_many",
            lambda records, params: np.zeros((len(records), width + 1)),
        )

        scored = trained_service.score_records()

        assert len(scored) == len(trained_service.record_store)
        assert all(a.source == RiskSource.MODEL for _, a in scored)


class TestSessions:
    def test_sessions_are_independent(self, trained_service, tmp_path):
        other = AttritionPredictionService(models_dir=tmp_path / "other")

        assert trained_service.session_id != other.session_id
        assert not other.is_model_trained
        assert len(other.record_store) == 0
        assert other.feature_importance is DEFAULT_FEATURE_IMPORTANCE


class TestExport:
    def test_rule_based_export(self, service, scenario_records):
        service.load_records([{**r, "EmployeeID": str(i)} for i, r in enumerate(scenario_records, 1)])

        text = service.export_high_risk_csv(threshold=0.7)
        lines = text.strip().split("\n")

        assert len(lines) == 2
        assert lines[1].startswith("1,,,25,3000,0.836,")
        assert lines[1].endswith("Review compensation package and consider salary adjustment")

    def test_export_threshold_zero_lists_everyone(self, trained_service):
        text = trained_service.export_high_risk_csv(threshold=0.0)
        scores = [float(line.split(",")[-2]) for line in text.strip().split("\n")[1:]]

        assert len(scores) == len(trained_service.record_store)
        assert scores == sorted(scores, reverse=True)

    def test_analysis(self, trained_service):
        result = trained_service.perform_comprehensive_analysis()

        assert set(result) == {"department_stats", "age_groups", "income_groups"}


class TestPersistence:
    def test_save_and_load(self, trained_service, tmp_path, sample_high_risk_employee):
        path = trained_service.save_model()

        fresh = AttritionPredictionService(models_dir=tmp_path)
        assert fresh.load_model(path)

        assert fresh.model.model_id == trained_service.model.model_id
        assert fresh.predict_attrition(sample_high_risk_employee).score == pytest.approx(
            trained_service.predict_attrition(sample_high_risk_employee).score
        )

    def test_load_missing(self, service):
        assert service.load_model() is False

    def test_save_without_model(self, service):
        with pytest.raises(TrainingError):
            service.save_model()
