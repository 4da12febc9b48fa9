from fastapi import APIRouter

from attrition_risk.api.v1 import attrition

api_router = APIRouter()
api_router.include_router(attrition.router, prefix="/attrition", tags=["attrition"])
