import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, status
from fastapi.responses import PlainTextResponse

from attrition_risk.api.deps import get_prediction_service
from attrition_risk.core.exceptions import DataLoadError, TrainingCancelledError, TrainingError
from attrition_risk.schemas.risk import (
    FeatureImportanceItem,
    FeatureImportanceResponse,
    PredictionRequest,
    PredictionResponse,
)
from attrition_risk.schemas.training import ModelTrainingResponse, TrainingConfig
from attrition_risk.services.attrition_prediction_service import AttritionPredictionService

logger = logging.getLogger("attrition_risk.api")

router = APIRouter()


@router.post("/dataset")
async def upload_dataset(
    file: UploadFile = File(...),
    service: AttritionPredictionService = Depends(get_prediction_service),
) -> Dict[str, Any]:
    """Load an HR CSV export as the session dataset."""
    content = await file.read()
    try:
        store = service.load_csv(content)
    except DataLoadError as e:
        logger.warning(f"Rejected dataset upload {file.filename}: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    summary = store.summary()
    return {
        "filename": file.filename,
        "total_rows": summary.total_rows,
        "trainable_rows": summary.trainable_rows,
        "skipped_rows": summary.skipped_rows,
    }


@router.post("/train", response_model=ModelTrainingResponse)
async def train_model(
    config: Optional[TrainingConfig] = None,
    service: AttritionPredictionService = Depends(get_prediction_service),
):
    """
    Train the classifier on the loaded dataset.

    On failure the previous model (if any) keeps serving predictions.
    """
    try:
        model = await service.train_async(config)
    except TrainingCancelledError as e:
        logger.info(f"Training request cancelled: {e}")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except TrainingError as e:
        logger.warning(f"Training request failed: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return ModelTrainingResponse(
        model_id=model.model_id,
        trained_at=model.trained_at,
        training_samples=model.training_samples,
        validation_samples=model.validation_samples,
        epochs_completed=len(model.history),
        feature_width=model.n_features,
        metrics=model.metrics,
        feature_importance=service.feature_importance.as_dict(),
    )


@router.get("/train/status")
async def get_training_status(
    service: AttritionPredictionService = Depends(get_prediction_service),
) -> Dict[str, Any]:
    progress = service.training_progress
    return {
        **progress.model_dump(),
        "percent": progress.percent,
        "model_trained": service.is_model_trained,
    }


@router.post("/train/cancel")
async def cancel_training(
    service: AttritionPredictionService = Depends(get_prediction_service),
) -> Dict[str, bool]:
    return {"cancelled": service.cancel_training()}


@router.post("/predict", response_model=PredictionResponse)
async def predict_attrition(
    request: PredictionRequest,
    service: AttritionPredictionService = Depends(get_prediction_service),
):
    """
    Predict attrition risk for a single employee.

    Uses the trained network when available and falls back to rule-based
    scoring otherwise; ``source`` tells which path produced the score.
    """
    assessment = service.predict_attrition(request.features)
    return PredictionResponse(
        employee_id=request.employee_id,
        attrition_probability=assessment.score,
        risk_level=assessment.level,
        source=assessment.source,
        high_risk=service.is_high_risk(assessment),
        predicted_at=assessment.assessed_at,
    )


@router.get("/feature-importance", response_model=FeatureImportanceResponse)
async def get_feature_importance(
    service: AttritionPredictionService = Depends(get_prediction_service),
):
    importance = service.feature_importance
    return FeatureImportanceResponse(
        features=[FeatureImportanceItem(feature=name, importance=weight) for name, weight in importance],
        estimated=importance.estimated,
    )


@router.get("/analysis")
async def get_workforce_analysis(
    service: AttritionPredictionService = Depends(get_prediction_service),
) -> Dict[str, Any]:
    """Chart-ready aggregates over the loaded dataset."""
    if not len(service.record_store):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No dataset loaded")

    analysis = service.analysis()
    return {
        "summary": analysis.summary(),
        **analysis.perform_comprehensive_analysis(),
        "age_distribution": analysis.age_distribution(),
        "work_life_distribution": analysis.work_life_distribution(),
        "education_distribution": analysis.education_distribution(),
    }


@router.get("/export/high-risk", response_class=PlainTextResponse)
async def export_high_risk(
    threshold: Optional[float] = None,
    service: AttritionPredictionService = Depends(get_prediction_service),
):
    if threshold is not None and not 0.0 <= threshold <= 1.0:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="threshold must be in [0, 1]")

    csv_text = service.export_high_risk_csv(threshold=threshold)
    return PlainTextResponse(
        csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="high_risk_employees.csv"'},
    )
