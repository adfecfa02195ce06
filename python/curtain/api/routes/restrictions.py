"""Restriction rule routes (admin only).

Routes are transport-only:
- Require an admin viewer
- Call exactly one service function
- Return success(...) or raise ApiError

Rule writes do not recompute exclusions; call POST /recompute/{user_id}.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from curtain.api.deps import get_db
from curtain.auth.middleware import Viewer, require_admin
from curtain.responses import success_response
from curtain.schemas.restrictions import DeleteRestrictionsOut, SetRestrictionsRequest
from curtain.services import restrictions as restrictions_service

router = APIRouter()


@router.get("/restrictions/{user_id}")
def get_restrictions(
    user_id: int,
    admin: Annotated[Viewer, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Get every restriction rule of a user, ordered by entity type."""
    result = restrictions_service.get_rules(db, user_id)
    return success_response([r.model_dump(mode="json", by_alias=True) for r in result])


@router.put("/restrictions/{user_id}")
def set_restrictions(
    user_id: int,
    body: SetRestrictionsRequest,
    admin: Annotated[Viewer, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Replace every restriction rule of a user.

    400 on an unknown entity type or mode, or two rules for one type.
    """
    result = restrictions_service.set_rules(db, user_id, body.restrictions)
    return success_response([r.model_dump(mode="json", by_alias=True) for r in result])


@router.delete("/restrictions/{user_id}")
def delete_restrictions(
    user_id: int,
    admin: Annotated[Viewer, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Clear every restriction rule of a user."""
    deleted = restrictions_service.delete_rules(db, user_id)
    return success_response(
        DeleteRestrictionsOut(deleted=deleted).model_dump(mode="json", by_alias=True)
    )
