import logging
import traceback
from datetime import datetime

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from attrition_risk import __version__
from attrition_risk.api.v1 import api_router
from attrition_risk.core.config import settings
from attrition_risk.core.logging_config import setup_logging
from attrition_risk.services.attrition_prediction_service import AttritionPredictionService

# Configure structured logging (JSON in production, colored in development)
setup_logging()
logger = logging.getLogger("attrition_risk")


class ErrorResponse(BaseModel):
    """Standardized error response format."""
    error: str
    detail: str | None = None
    timestamp: str
    path: str | None = None


class HealthResponse(BaseModel):
    """Health check response format."""
    status: str
    service: str
    version: str
    environment: str
    checks: dict[str, bool]


def create_app() -> FastAPI:
    app = FastAPI(
        title=f"{settings.PROJECT_NAME} API",
        description="Employee attrition risk scoring with rule-based fallback",
        version=__version__,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )
    app.state.prediction_service = AttritionPredictionService()

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Global exception handler that returns consistent error responses.
        In production, internal details are hidden.
        """
        error_id = datetime.utcnow().strftime("%Y%m%d%H%M%S%f")
        logger.error(
            f"Unhandled exception [{error_id}]: {exc}\n"
            f"Path: {request.url.path}\n"
            f"Traceback: {traceback.format_exc()}"
        )

        if settings.ENVIRONMENT.lower() == "production":
            detail = f"An unexpected error occurred. Reference ID: {error_id}"
            error = "Internal server error"
        else:
            detail = str(exc)
            error = exc.__class__.__name__

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(
                error=error,
                detail=detail,
                timestamp=datetime.utcnow().isoformat(),
                path=request.url.path,
            ).model_dump(),
        )

    @app.get("/health", response_model=HealthResponse)
    async def health_check(request: Request) -> HealthResponse:
        service = request.app.state.prediction_service
        return HealthResponse(
            status="healthy",
            service=settings.PROJECT_NAME,
            version=__version__,
            environment=settings.ENVIRONMENT,
            checks={
                "dataset_loaded": len(service.record_store) > 0,
                "model_trained": service.is_model_trained,
            },
        )

    app.include_router(api_router, prefix=f"{settings.API_V1_STR}")
    return app


app = create_app()
