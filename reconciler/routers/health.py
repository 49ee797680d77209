# reconciler/routers/health.py

from fastapi import APIRouter, Depends

from reconciler.config import Settings, get_settings

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {
        "status": "healthy",
        "service": "reconciler-api",
    }


@router.get("/ready")
async def readiness_check(settings: Settings = Depends(get_settings)):
    """Readiness check - reports whether the reasoning service is configured."""
    reasoning_ready = bool(settings.anthropic_api_key)
    return {
        "status": "ready" if reasoning_ready else "degraded",
        "checks": {
            "reasoning_service": "ok" if reasoning_ready else "missing_credentials",
        }
    }
