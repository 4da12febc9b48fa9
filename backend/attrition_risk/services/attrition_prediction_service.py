import asyncio
import threading
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, TextIO, Tuple, Union

import numpy as np

from attrition_risk.core.config import settings
from attrition_risk.core.exceptions import (
    AttritionRiskError,
    EncodingError,
    PredictionError,
    ShapeError,
    TrainingCancelledError,
    TrainingError,
)
from attrition_risk.core.logging_config import get_logger
from attrition_risk.schemas.employee import EmployeeLike, EmployeeRecord, as_employee
from attrition_risk.schemas.risk import RiskAssessment, RiskSource
from attrition_risk.schemas.training import (
    EpochMetrics,
    TrainingConfig,
    TrainingProgress,
    TrainingStatus,
)
from attrition_risk.services.analytics.risk_reporter import RiskReporter, is_high_risk
from attrition_risk.services.analytics.workforce_analysis_service import (
    WorkforceAnalysisService,
    export_high_risk_csv,
    recommended_action,
)
from attrition_risk.services.data.record_store import CsvSource, RecordStore
from attrition_risk.services.ml.attrition_classifier import (
    AttritionClassifier,
    TrainedModel,
    load_model,
    save_model,
)
from attrition_risk.services.ml.feature_encoder import FeatureEncoder
from attrition_risk.services.ml.feature_importance_service import (
    DEFAULT_FEATURE_IMPORTANCE,
    FeatureImportance,
    FeatureImportanceEstimator,
)
from attrition_risk.services.ml.rule_based_scorer import RuleBasedScorer

ProgressCallback = Callable[[TrainingProgress], None]

MODEL_FILENAME = "attrition_model.pkl"


class AttritionPredictionService:
    """
    One analysis session: a dataset, its trained model and feature importance.

    State is held on the instance, never in module globals, so independent
    sessions (and tests) do not interfere. The trained model and feature
    importance are immutable snapshots swapped in whole at the end of a
    successful run; readers need no locking.
    """

    def __init__(
        self,
        encoder: Optional[FeatureEncoder] = None,
        classifier: Optional[AttritionClassifier] = None,
        scorer: Optional[RuleBasedScorer] = None,
        reporter: Optional[RiskReporter] = None,
        importance_estimator: Optional[FeatureImportanceEstimator] = None,
        models_dir: Optional[Union[str, Path]] = None,
    ):
        self.session_id = uuid.uuid4().hex[:8]
        self.encoder = encoder or FeatureEncoder()
        self.classifier = classifier or AttritionClassifier()
        self.scorer = scorer or RuleBasedScorer()
        self.reporter = reporter or RiskReporter()
        self.importance_estimator = importance_estimator or FeatureImportanceEstimator(self.classifier)
        self.models_dir = Path(models_dir or settings.MODELS_DIR)

        self.record_store = RecordStore()
        self.model: Optional[TrainedModel] = None
        self.feature_importance: FeatureImportance = DEFAULT_FEATURE_IMPORTANCE
        self.training_progress = TrainingProgress()

        self._training_lock = threading.Lock()
        self._cancel_event = threading.Event()

        self.logger = get_logger(__name__)
        self.logger.set_context(session_id=self.session_id)

    # ------------------------------------------------------------------
    # Data
    # ------------------------------------------------------------------

    def load_csv(self, source: CsvSource) -> RecordStore:
        """Replace the session dataset. The trained model is kept until retrained."""
        self.record_store = RecordStore.load_csv(source)
        return self.record_store

    def load_records(self, rows: Iterable[Union[EmployeeRecord, Mapping[str, Any]]]) -> RecordStore:
        self.record_store = RecordStore.from_records(rows)
        self.logger.info(f"Loaded {len(self.record_store)} employee records")
        return self.record_store

    @property
    def is_model_trained(self) -> bool:
        return self.model is not None

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    def _update_progress(self, status: TrainingStatus, message: str, **fields) -> None:
        progress = self.training_progress.model_copy(update={
            "status": status,
            "message": message,
            "updated_at": datetime.utcnow(),
            **fields,
        })
        self.training_progress = progress

    def train(
        self,
        config: Optional[TrainingConfig] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> TrainedModel:
        """
        Fit encoding parameters, train the classifier and re-estimate importance.

        Raises TrainingError (or TrainingCancelledError) on failure; in that
        case the previously published model stays in use.
        """
        config = config or TrainingConfig()
        if not self._training_lock.acquire(blocking=False):
            raise TrainingError("A training run is already in progress for this session")

        try:
            self._cancel_event.clear()
            self._update_progress(
                TrainingStatus.RUNNING, "Preparing training data",
                epoch=0, total_epochs=config.epochs, latest=None,
            )

            records = self.record_store.trainable_records()
            if not records:
                raise TrainingError("Cannot train on an empty training set: no records with Age and Attrition")

            try:
                encoding, features = self.encoder.fit_transform(records)
            except EncodingError as e:
                raise TrainingError(f"Could not encode training data: {e}", cause=e) from e
            labels = [r.label for r in records]

            def on_epoch_end(metrics: EpochMetrics, total_epochs: int) -> None:
                self._update_progress(
                    TrainingStatus.RUNNING,
                    f"Epoch {metrics.epoch}/{total_epochs}",
                    epoch=metrics.epoch,
                    total_epochs=total_epochs,
                    latest=metrics,
                )
                if progress_callback is not None:
                    progress_callback(self.training_progress)

            model = self.classifier.train(
                features,
                labels,
                encoding,
                config=config,
                on_epoch_end=on_epoch_end,
                cancel_event=self._cancel_event,
            )
            importance = self.importance_estimator.estimate(
                model, features, fallback=self.feature_importance
            )

            # Publish both snapshots only once everything succeeded
            self.model = model
            self.logger.set_context(model_id=model.model_id)
            self.feature_importance = importance
            self._update_progress(
                TrainingStatus.COMPLETED,
                f"Trained on {model.training_samples} records",
                epoch=len(model.history),
            )
            self.logger.info(f"Published model {model.model_id} ({model.n_features} features)")
            return model

        except TrainingCancelledError as e:
            self._update_progress(TrainingStatus.CANCELLED, str(e))
            self.logger.info(f"Training cancelled: {e}")
            raise
        except TrainingError as e:
            self._update_progress(TrainingStatus.FAILED, str(e))
            self.logger.error(f"Training failed: {e}")
            raise
        except Exception as e:
            self._update_progress(TrainingStatus.FAILED, str(e))
            self.logger.exception(f"Training failed unexpectedly: {e}")
            raise TrainingError(f"Training failed: {e}", cause=e) from e
        finally:
            self._training_lock.release()

    async def train_async(
        self,
        config: Optional[TrainingConfig] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> TrainedModel:
        """Run training in a worker thread so the event loop stays responsive."""
        return await asyncio.to_thread(self.train, config, progress_callback)

    def cancel_training(self) -> bool:
        """Ask a running training to stop before its next epoch."""
        if self.training_progress.status != TrainingStatus.RUNNING:
            return False
        self._cancel_event.set()
        return True

    # ------------------------------------------------------------------
    # Importance
    # ------------------------------------------------------------------

    def estimate_importance(self) -> FeatureImportance:
        """Re-run perturbation importance against the current dataset."""
        model = self.model
        if model is None:
            return self.feature_importance
        records = self.record_store.trainable_records()
        try:
            features = self.encoder.transform_many(records, model.encoding)
        except EncodingError as e:
            self.logger.warning(f"Could not encode records for importance estimation: {e}")
            return self.feature_importance
        self.feature_importance = self.importance_estimator.estimate(
            model, features, fallback=self.feature_importance
        )
        return self.feature_importance

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------

    def _model_probability(self, model: TrainedModel, employee: EmployeeLike) -> float:
        vector = self.encoder.transform(employee, model.encoding)
        return float(self.classifier.predict(model, [vector])[0])

    def rule_assessment(self, record: EmployeeLike) -> RiskAssessment:
        score = self.scorer.score(record, self.feature_importance)
        return self.reporter.classify(score, source=RiskSource.RULE)

    def predict_attrition(self, record: EmployeeLike) -> RiskAssessment:
        """
        Score one employee. Always returns an assessment: the model is used
        when trained, otherwise (or on any inference failure) the rule-based
        scorer, with ``source`` recording which path produced the score.
        """
        employee = as_employee(record)
        model = self.model
        if model is None:
            return self.rule_assessment(employee)

        try:
            probability = self._model_probability(model, employee)
        except (ShapeError, EncodingError, PredictionError) as e:
            self.logger.warning(f"Model prediction failed, using rule-based score: {e}")
            return self.rule_assessment(employee)

        return self.reporter.classify(probability, source=RiskSource.MODEL)

    def is_high_risk(self, assessment: RiskAssessment) -> bool:
        threshold = self.model.config.risk_threshold if self.model is not None else settings.RISK_THRESHOLD
        return is_high_risk(assessment.score, threshold)

    def score_records(
        self, records: Optional[Iterable[EmployeeRecord]] = None
    ) -> List[Tuple[EmployeeRecord, RiskAssessment]]:
        """Assess every record (default: the whole loaded dataset) in input order."""
        records = list(self.record_store if records is None else records)
        model = self.model
        if model is None or not records:
            return [(r, self.rule_assessment(r)) for r in records]

        try:
            features = self.encoder.transform_many(records, model.encoding)
            probabilities = self.classifier.predict(model, features)
        except AttritionRiskError as e:
            # Fall back record-by-record so one bad row does not downgrade the rest
            self.logger.warning(f"Batch prediction failed, scoring individually: {e}")
            return [(r, self.predict_attrition(r)) for r in records]

        return [
            (r, self.reporter.classify(p, source=RiskSource.MODEL))
            for r, p in zip(records, np.asarray(probabilities, dtype=float))
        ]

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def analysis(self) -> WorkforceAnalysisService:
        return WorkforceAnalysisService(self.record_store.to_frame())

    def perform_comprehensive_analysis(self) -> Dict[str, Any]:
        return self.analysis().perform_comprehensive_analysis()

    def export_high_risk_csv(
        self,
        destination: Optional[TextIO] = None,
        threshold: Optional[float] = None,
    ) -> str:
        """CSV of employees whose score meets the risk threshold."""
        if threshold is None:
            threshold = self.model.config.risk_threshold if self.model is not None else settings.RISK_THRESHOLD
        scored = [
            (record, assessment, recommended_action(self.scorer.explain(record, self.feature_importance)))
            for record, assessment in self.score_records()
        ]
        return export_high_risk_csv(scored, threshold, destination)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save_model(self, path: Optional[Union[str, Path]] = None) -> Path:
        if self.model is None:
            raise TrainingError("No trained model to save")
        return save_model(self.model, Path(path) if path else self.models_dir / MODEL_FILENAME)

    def load_model(self, path: Optional[Union[str, Path]] = None) -> bool:
        """Load a saved model; feature importance is re-estimated on the current dataset if any."""
        model = load_model(Path(path) if path else self.models_dir / MODEL_FILENAME)
        if model is None:
            return False
        self.model = model
        self.logger.set_context(model_id=model.model_id)
        self.estimate_importance()
        self.logger.info(f"Loaded model {model.model_id}")
        return True
