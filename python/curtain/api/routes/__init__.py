"""API route definitions.

Uses a factory pattern to avoid import-time settings loading.
"""

from fastapi import APIRouter

from curtain.api.routes.exclusions import router as exclusions_router
from curtain.api.routes.health import router as health_router
from curtain.api.routes.hidden_entities import router as hidden_entities_router
from curtain.api.routes.restrictions import router as restrictions_router


def create_api_router() -> APIRouter:
    """Create and configure the API router.

    Returns:
        Configured APIRouter with all routes registered.
    """
    api_router = APIRouter()
    api_router.include_router(health_router, tags=["health"])
    api_router.include_router(restrictions_router, tags=["restrictions"])
    api_router.include_router(exclusions_router, tags=["exclusions"])
    api_router.include_router(hidden_entities_router, tags=["hidden-entities"])
    return api_router


__all__ = ["create_api_router"]
