"""Exclusion recompute and statistics routes (admin only)."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from curtain.api.deps import get_db, get_recompute_coordinator
from curtain.auth.middleware import Viewer, require_admin
from curtain.responses import success_response
from curtain.services import exclusion_stats as stats_service
from curtain.services.recompute import RecomputeCoordinator

router = APIRouter()


@router.post("/recompute-all")
def recompute_all(
    admin: Annotated[Viewer, Depends(require_admin)],
    coordinator: Annotated[RecomputeCoordinator, Depends(get_recompute_coordinator)],
) -> dict:
    """Recompute every user's exclusions.

    Per-user failures are reported in the body, never as an error status.
    """
    result = coordinator.recompute_all()
    return success_response(result.model_dump(mode="json", by_alias=True))


@router.post("/recompute/{user_id}")
def recompute_user(
    user_id: int,
    admin: Annotated[Viewer, Depends(require_admin)],
    coordinator: Annotated[RecomputeCoordinator, Depends(get_recompute_coordinator)],
) -> dict:
    """Recompute one user's exclusions synchronously.

    404 if the user does not exist; 400 if user_id is not an integer.
    """
    result = coordinator.recompute_user(user_id)
    return success_response(result.model_dump(mode="json", by_alias=True))


@router.get("/stats")
def exclusion_stats(
    admin: Annotated[Viewer, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Exclusion row counts grouped by user, entity type and reason."""
    result = stats_service.get_exclusion_stats(db)
    return success_response([s.model_dump(mode="json", by_alias=True) for s in result])


@router.get("/stats/{user_id}/visible")
def visible_stats(
    user_id: int,
    admin: Annotated[Viewer, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Visible entity counts of a user as of the last recompute."""
    result = stats_service.get_entity_stats(db, user_id)
    return success_response([s.model_dump(mode="json", by_alias=True) for s in result])
