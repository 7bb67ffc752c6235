"""
Health API endpoints - Service liveness and AI backend availability.
"""

from fastapi import APIRouter, Depends

from ..agents.model_router import ModelRouter, get_model_router
from ..config import settings
from ..realtime.coordinator import ChatCoordinator, get_coordinator
from ..utils.auth import get_current_user_id

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health_check(coordinator: ChatCoordinator = Depends(get_coordinator)):
    """Health check endpoint."""
    return {
        "status": "healthy",
        "storage": settings.storage_type,
        "version": settings.app_version,
        "active_connections": coordinator.registry.active_count(),
    }


@router.get("/models")
async def models_health(
    user_id: str = Depends(get_current_user_id),
    model_router: ModelRouter = Depends(get_model_router)
):
    """
    Probe every AI backend with a short prompt.
    Authenticated because each probe is a billed completion.

    Returns:
        Per-backend availability in fallback order
    """
    results = await model_router.health_check()
    models = {
        backend.value: {
            "available": health.available,
            "last_checked": health.last_checked,
            "error": health.error,
            "latency_ms": health.latency_ms,
        }
        for backend, health in results.items()
    }
    any_available = any(h.available for h in results.values())
    return {
        "status": "healthy" if any_available else "degraded",
        "default_backend": settings.default_backend,
        "fallback_order": [b.value for b in model_router.fallback_order],
        "models": models,
    }
