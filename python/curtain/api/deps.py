"""FastAPI dependencies for route handlers.

Common dependencies like database sessions and the recompute coordinator.
"""

from fastapi import Request

from curtain.db.session import get_db, get_session_factory
from curtain.services.catalog import EntityCatalog
from curtain.services.recompute import RecomputeCoordinator

__all__ = ["get_db", "get_session_factory", "get_recompute_coordinator", "get_entity_catalog"]


def get_recompute_coordinator(request: Request) -> RecomputeCoordinator:
    """Get the shared recompute coordinator from app state.

    The coordinator is created once per app in create_app and holds the
    per-user locks, so every request must share it.
    """
    return request.app.state.recompute_coordinator


def get_entity_catalog(request: Request) -> EntityCatalog | None:
    """Get the entity catalog the coordinator computes against."""
    return request.app.state.recompute_coordinator.catalog
