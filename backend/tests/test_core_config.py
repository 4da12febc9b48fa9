"""
Tests for attrition_risk/core/config.py - settings validation.
"""
import importlib

import pytest


class TestSettingsValidation:
    """Invalid values are reported together as a ValueError."""

    def test_defaults(self):
        from attrition_risk.core.config import Settings

        settings = Settings()

        assert settings.TRAINING_EPOCHS > 0
        assert settings.HIDDEN_LAYER_SIZES == [64, 32, 16]
        assert settings.MEDIUM_RISK_THRESHOLD < settings.HIGH_RISK_THRESHOLD

    def test_comma_separated_layer_sizes(self):
        from attrition_risk.core.config import Settings

        settings = Settings(HIDDEN_LAYER_SIZES="16, 8")

        assert settings.HIDDEN_LAYER_SIZES == [16, 8]

    def test_zero_epochs_rejected(self, monkeypatch):
        monkeypatch.setenv("TRAINING_EPOCHS", "0")
        from attrition_risk.core.config import Settings

        with pytest.raises(ValueError, match="TRAINING_EPOCHS"):
            Settings()

    def test_threshold_order_rejected(self):
        from attrition_risk.core.config import Settings

        with pytest.raises(ValueError, match="MEDIUM_RISK_THRESHOLD"):
            Settings(HIGH_RISK_THRESHOLD=0.3, MEDIUM_RISK_THRESHOLD=0.4)

    def test_errors_reported_together(self):
        from attrition_risk.core.config import Settings

        with pytest.raises(ValueError) as exc_info:
            Settings(VALIDATION_SPLIT=1.5, LEARNING_RATE=0)

        message = str(exc_info.value)
        assert "VALIDATION_SPLIT" in message
        assert "LEARNING_RATE" in message

    def test_debug_rejected_in_production(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("DEBUG", "true")

        from attrition_risk.core import config

        with pytest.raises(ValueError, match="DEBUG"):
            importlib.reload(config)

        monkeypatch.setenv("ENVIRONMENT", "development")
        importlib.reload(config)

    def test_models_dir_alias(self, monkeypatch):
        monkeypatch.setenv("ATTRITION_MODELS_DIR", "/tmp/attrition-models")
        from attrition_risk.core.config import Settings

        assert Settings().MODELS_DIR == "/tmp/attrition-models"


class TestTrainingConfig:
    def test_defaults_follow_settings(self):
        from attrition_risk.core.config import settings
        from attrition_risk.schemas.training import TrainingConfig

        config = TrainingConfig()

        assert config.epochs == settings.TRAINING_EPOCHS
        assert config.hidden_layer_sizes == list(settings.HIDDEN_LAYER_SIZES)

    def test_invalid_layers_rejected(self):
        from attrition_risk.schemas.training import TrainingConfig

        with pytest.raises(ValueError):
            TrainingConfig(hidden_layer_sizes=[16, 0])
