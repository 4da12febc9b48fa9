import logging

from fastapi import Request

from attrition_risk.services.attrition_prediction_service import AttritionPredictionService

logger = logging.getLogger("attrition_risk.deps")


def get_prediction_service(request: Request) -> AttritionPredictionService:
    """The session service owned by the running app (one per app instance)."""
    service = getattr(request.app.state, "prediction_service", None)
    if service is None:
        service = AttritionPredictionService()
        request.app.state.prediction_service = service
        logger.info(f"Created prediction session {service.session_id}")
    return service
