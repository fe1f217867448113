"""
Health check and system status endpoints.
"""

from datetime import datetime, timezone

from fastapi import APIRouter

from dependencies import SettingsDep
from models import HealthResponse


router = APIRouter(
    tags=["health"],
    responses={200: {"description": "Service is healthy"}},
)


def _health(settings) -> HealthResponse:
    return HealthResponse(
        ok=True,
        status="healthy",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=settings.app_version,
        canvas_api_version=settings.canvas_api_version,
        canvas_configured=settings.canvas_configured,
        assistant_configured=bool(settings.openai_api_key),
    )


@router.get("/api/health", response_model=HealthResponse)
async def health_check(settings: SettingsDep) -> HealthResponse:
    """
    Health check endpoint for monitoring service availability.

    Reports whether Canvas and the assistant have credentials configured.
    """
    return _health(settings)


@router.get("/health", response_model=HealthResponse)
async def root_health_check(settings: SettingsDep) -> HealthResponse:
    """Alternative health check endpoint at root level."""
    return _health(settings)
