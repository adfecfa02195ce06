"""Hidden entity routes for the authenticated viewer.

IMPORTANT: /hidden-entities/all and /hidden-entities/ids are registered
before the dynamic /hidden-entities/{entity_type}/... routes.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from curtain.api.deps import get_db, get_entity_catalog
from curtain.auth.middleware import Viewer, get_viewer
from curtain.responses import success_response
from curtain.schemas.hidden_entities import (
    BulkHideRequest,
    HideEntityRequest,
    UnhideAllOut,
    UnhideOut,
)
from curtain.services import hidden_entities as hidden_service
from curtain.services.catalog import EntityCatalog
from curtain.services.entity_graph import GLOBAL_INSTANCE, parse_entity_type

router = APIRouter()


# =============================================================================
# Static routes
# =============================================================================


@router.get("/hidden-entities/ids")
def get_hidden_entity_ids(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Hidden entity IDs grouped by entity type."""
    return success_response(hidden_service.ids_by_type(db, viewer.user_id))


@router.delete("/hidden-entities/all")
def unhide_all_entities(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    entity_type: Annotated[str | None, Query(alias="entityType")] = None,
) -> dict:
    """Unhide everything, optionally only one entity type."""
    parsed = parse_entity_type(entity_type) if entity_type else None
    count = hidden_service.unhide_all(db, viewer.user_id, parsed)
    return success_response(UnhideAllOut(count=count).model_dump(mode="json", by_alias=True))


@router.post("/hidden-entities/bulk")
def bulk_hide_entities(
    body: BulkHideRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    catalog: Annotated[EntityCatalog | None, Depends(get_entity_catalog)],
) -> dict:
    """Hide several entities; per-item failures are counted, not raised."""
    result = hidden_service.bulk_hide(db, viewer.user_id, body.entities, catalog=catalog)
    return success_response(result.model_dump(mode="json", by_alias=True))


@router.get("/hidden-entities")
def list_hidden_entities(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    entity_type: Annotated[str | None, Query(alias="entityType")] = None,
) -> dict:
    """List hidden entities, newest first."""
    parsed = parse_entity_type(entity_type) if entity_type else None
    result = hidden_service.list_hidden(db, viewer.user_id, parsed)
    return success_response([h.model_dump(mode="json", by_alias=True) for h in result])


@router.post("/hidden-entities", status_code=201)
def hide_entity(
    body: HideEntityRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    catalog: Annotated[EntityCatalog | None, Depends(get_entity_catalog)],
) -> dict:
    """Hide one entity. Hiding an already hidden entity is a no-op."""
    entity_type = parse_entity_type(body.entity_type)
    result = hidden_service.hide(
        db, viewer.user_id, entity_type, body.entity_id, body.instance_id, catalog=catalog
    )
    return success_response(result.model_dump(mode="json", by_alias=True))


# =============================================================================
# Dynamic routes
# =============================================================================


@router.delete("/hidden-entities/{entity_type}/{entity_id}")
def unhide_entity(
    entity_type: str,
    entity_id: str,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    instance_id: Annotated[str, Query(alias="instanceId")] = GLOBAL_INSTANCE,
) -> dict:
    """Unhide one entity. Exclusions are rebuilt by a background recompute."""
    parsed = parse_entity_type(entity_type)
    removed = hidden_service.unhide(db, viewer.user_id, parsed, entity_id, instance_id)
    return success_response(UnhideOut(removed=removed).model_dump(mode="json", by_alias=True))
