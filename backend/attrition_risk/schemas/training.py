from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from attrition_risk.core.config import settings


class TrainingConfig(BaseModel):
    """Options for one classifier training run. Defaults come from settings."""
    epochs: int = Field(default_factory=lambda: settings.TRAINING_EPOCHS, gt=0)
    batch_size: int = Field(default_factory=lambda: settings.TRAINING_BATCH_SIZE, gt=0)
    validation_split: float = Field(default_factory=lambda: settings.VALIDATION_SPLIT, ge=0.0, lt=1.0)
    risk_threshold: float = Field(default_factory=lambda: settings.RISK_THRESHOLD, ge=0.0, le=1.0)
    hidden_layer_sizes: List[int] = Field(default_factory=lambda: list(settings.HIDDEN_LAYER_SIZES))
    learning_rate: float = Field(default_factory=lambda: settings.LEARNING_RATE, gt=0.0)
    random_state: Optional[int] = Field(default_factory=lambda: settings.RANDOM_STATE)

    @field_validator("hidden_layer_sizes")
    @classmethod
    def _positive_layers(cls, value: List[int]) -> List[int]:
        if not value or any(size <= 0 for size in value):
            raise ValueError("hidden_layer_sizes must list at least one positive layer width")
        return value


class TrainingStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class EpochMetrics(BaseModel):
    epoch: int
    loss: float
    accuracy: float
    val_loss: Optional[float] = None
    val_accuracy: Optional[float] = None


class TrainingProgress(BaseModel):
    """Pollable snapshot of a training run; also passed to progress callbacks."""
    status: TrainingStatus = TrainingStatus.IDLE
    epoch: int = 0
    total_epochs: int = 0
    latest: Optional[EpochMetrics] = None
    message: str = ""
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def percent(self) -> int:
        if self.total_epochs <= 0:
            return 0
        return max(0, min(100, int(round(100 * self.epoch / self.total_epochs))))


class ModelTrainingResponse(BaseModel):
    """Summary returned after a successful training run."""
    model_id: str
    trained_at: datetime
    training_samples: int
    validation_samples: int
    epochs_completed: int
    feature_width: int
    metrics: Dict[str, float] = Field(default_factory=dict)
    feature_importance: Dict[str, float] = Field(default_factory=dict)
