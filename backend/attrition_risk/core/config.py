from typing import List

from pydantic import Field, AliasChoices, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Allow comma-separated env vars for list fields like HIDDEN_LAYER_SIZES
    model_config = SettingsConfigDict(env_file=".env", env_parse_delimiter=",", extra="ignore")
    PROJECT_NAME: str = "Attrition Risk"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str | None = None

    # Model/artifact storage
    MODELS_DIR: str = Field(default="models", validation_alias=AliasChoices("MODELS_DIR", "ATTRITION_MODELS_DIR"))

    # Classifier training defaults (overridable per run with TrainingConfig)
    TRAINING_EPOCHS: int = 50
    TRAINING_BATCH_SIZE: int = 32
    VALIDATION_SPLIT: float = 0.2
    LEARNING_RATE: float = 0.001
    RANDOM_STATE: int = 42

    # NOTE: Pydantic Settings treats list fields as "complex" env values (expects JSON).
    # We accept either a JSON array or a comma-separated string by allowing `str` here
    # and normalizing via the field validator below.
    HIDDEN_LAYER_SIZES: List[int] | str = Field(default_factory=lambda: [64, 32, 16])

    # Binary high/low-risk cutoff applied to model probabilities
    RISK_THRESHOLD: float = 0.5

    # Three-band reporting thresholds
    HIGH_RISK_THRESHOLD: float = 0.70
    MEDIUM_RISK_THRESHOLD: float = 0.40

    # Perturbation importance
    IMPORTANCE_NOISE_STD: float = 0.1

    def model_post_init(self, __context):
        """
        Validate configuration on startup. All problems are reported together
        so a bad .env can be fixed in one pass.
        """
        errors = []

        if self.TRAINING_EPOCHS <= 0:
            errors.append("TRAINING_EPOCHS must be a positive integer.")
        if self.TRAINING_BATCH_SIZE <= 0:
            errors.append("TRAINING_BATCH_SIZE must be a positive integer.")
        if not 0.0 <= self.VALIDATION_SPLIT < 1.0:
            errors.append("VALIDATION_SPLIT must be in [0, 1).")
        if self.LEARNING_RATE <= 0:
            errors.append("LEARNING_RATE must be positive.")
        if not self.HIDDEN_LAYER_SIZES or any(size <= 0 for size in self.HIDDEN_LAYER_SIZES):
            errors.append("HIDDEN_LAYER_SIZES must list at least one positive layer width.")

        for name in ("RISK_THRESHOLD", "HIGH_RISK_THRESHOLD", "MEDIUM_RISK_THRESHOLD"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                errors.append(f"{name} must be in [0, 1].")
        if self.MEDIUM_RISK_THRESHOLD >= self.HIGH_RISK_THRESHOLD:
            errors.append("MEDIUM_RISK_THRESHOLD must be lower than HIGH_RISK_THRESHOLD.")

        if self.IMPORTANCE_NOISE_STD <= 0:
            errors.append("IMPORTANCE_NOISE_STD must be positive.")

        if self.ENVIRONMENT.lower() == "production" and self.DEBUG:
            errors.append("DEBUG must be False in production.")

        if errors:
            error_msg = "Configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
            raise ValueError(error_msg)

    @field_validator("HIDDEN_LAYER_SIZES", mode="before")
    @classmethod
    def _split_layer_sizes(cls, value):
        if isinstance(value, str):
            return [int(v.strip()) for v in value.strip("[]").split(",") if v.strip()]
        return value


settings = Settings()
