"""Health Check Routes"""
from fastapi import APIRouter, Request

from src.presentation.api.interceptors import TransformRoute

router = APIRouter(route_class=TransformRoute)


@router.get("/health")
async def health_check(request: Request) -> dict:
    """ヘルスチェック"""
    settings = request.app.state.settings
    return {
        "status": "healthy",
        "service": settings.service_name,
        "environment": settings.environment,
    }


@router.get("/ready")
async def readiness_check() -> dict:
    """レディネスチェック"""
    return {"status": "ready"}
