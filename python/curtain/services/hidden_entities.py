"""Hidden entity manager.

Users hide individual entities from their own view. A hidden entity is an
explicit, opaque reference: it need not exist in the catalog, and it is never
inferred. instance_id "" hides the ID in every source instance.

Hiding writes best-effort exclusion rows immediately. Unhiding only removes
the record and schedules a background recompute, since the cascades it
unlocks can only be rebuilt by a full pass.
"""

from collections.abc import Iterable

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from curtain.db.models import EntityType, HiddenEntity
from curtain.db.session import transaction
from curtain.errors import ApiError, ApiErrorCode, InvalidRequestError
from curtain.logging import get_logger
from curtain.schemas.hidden_entities import BulkHideOut, HiddenEntityOut, HideEntityRequest
from curtain.services.catalog import EntityCatalog
from curtain.services.entity_graph import GLOBAL_INSTANCE, EntityKey, parse_entity_type

logger = get_logger(__name__)


def _to_out(row: HiddenEntity) -> HiddenEntityOut:
    return HiddenEntityOut(
        id=row.id,
        entity_type=row.entity_type,
        entity_id=row.entity_id,
        instance_id=row.instance_id,
        hidden_at=row.hidden_at,
    )


def _schedule_recompute(user_id: int) -> None:
    from curtain.services.recompute import enqueue_user_recompute

    enqueue_user_recompute(user_id)


def _find(
    db: Session, user_id: int, entity_type: EntityType, entity_id: str, instance_id: str
) -> HiddenEntity | None:
    return db.scalars(
        select(HiddenEntity).where(
            HiddenEntity.user_id == user_id,
            HiddenEntity.entity_type == entity_type.value,
            HiddenEntity.entity_id == entity_id,
            HiddenEntity.instance_id == instance_id,
        )
    ).first()


def hide(
    db: Session,
    user_id: int,
    entity_type: EntityType,
    entity_id: str,
    instance_id: str = GLOBAL_INSTANCE,
    catalog: EntityCatalog | None = None,
) -> HiddenEntityOut:
    """Hide one entity for a user. Idempotent.

    The hidden record is committed first. Exclusion rows are then written on a
    best-effort basis; a catalog failure there is logged and the hide stands.
    """
    with transaction(db):
        row = _find(db, user_id, entity_type, entity_id, instance_id)
        if row is None:
            row = HiddenEntity(
                user_id=user_id,
                entity_type=entity_type.value,
                entity_id=entity_id,
                instance_id=instance_id,
            )
            db.add(row)
            try:
                db.flush()
            except IntegrityError:
                # Lost a race with a concurrent hide of the same entity.
                db.rollback()
                row = _find(db, user_id, entity_type, entity_id, instance_id)
                if row is None:
                    raise

    result = _to_out(row)

    from curtain.services.exclusions import apply_hidden_entity

    try:
        apply_hidden_entity(db, catalog, user_id, entity_type, entity_id, instance_id)
    except ApiError as e:
        logger.warning(
            "hidden_entity_exclusion_skipped",
            target_user_id=user_id,
            entity_type=entity_type.value,
            entity_id=entity_id,
            error_code=e.code.value,
            error=e.message,
        )

    return result


def unhide(
    db: Session,
    user_id: int,
    entity_type: EntityType,
    entity_id: str,
    instance_id: str = GLOBAL_INSTANCE,
) -> bool:
    """Remove one hidden record. Returns True if something was removed."""
    with transaction(db):
        result = db.execute(
            delete(HiddenEntity).where(
                HiddenEntity.user_id == user_id,
                HiddenEntity.entity_type == entity_type.value,
                HiddenEntity.entity_id == entity_id,
                HiddenEntity.instance_id == instance_id,
            )
        )

    removed = result.rowcount > 0
    if removed:
        _schedule_recompute(user_id)
    return removed


def unhide_all(db: Session, user_id: int, entity_type: EntityType | None = None) -> int:
    """Remove every hidden record of a user, optionally of one type.

    Returns:
        Number of records removed.
    """
    stmt = delete(HiddenEntity).where(HiddenEntity.user_id == user_id)
    if entity_type is not None:
        stmt = stmt.where(HiddenEntity.entity_type == entity_type.value)

    with transaction(db):
        result = db.execute(stmt)

    count = result.rowcount
    logger.info(
        "hidden_entities_cleared",
        target_user_id=user_id,
        entity_type=entity_type.value if entity_type else None,
        count=count,
    )
    if count > 0:
        _schedule_recompute(user_id)
    return count


def bulk_hide(
    db: Session,
    user_id: int,
    items: Iterable[HideEntityRequest],
    catalog: EntityCatalog | None = None,
) -> BulkHideOut:
    """Hide several entities.

    The batch is validated up front; after that each item succeeds or fails
    on its own and is counted.

    Raises:
        InvalidRequestError(E_INVALID_REQUEST): If the batch is empty.
        InvalidRequestError(E_INVALID_ENTITY_TYPE): If any item has an unknown type.
    """
    items = list(items)
    if not items:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, "entities must not be empty")

    parsed = [
        (parse_entity_type(item.entity_type), item.entity_id, item.instance_id) for item in items
    ]

    success_count = 0
    fail_count = 0
    for entity_type, entity_id, instance_id in parsed:
        try:
            hide(db, user_id, entity_type, entity_id, instance_id, catalog=catalog)
            success_count += 1
        except Exception as e:
            db.rollback()
            fail_count += 1
            logger.warning(
                "bulk_hide_item_failed",
                target_user_id=user_id,
                entity_type=entity_type.value,
                entity_id=entity_id,
                error=str(e),
            )

    return BulkHideOut(success_count=success_count, fail_count=fail_count)


def list_hidden(
    db: Session, user_id: int, entity_type: EntityType | None = None
) -> list[HiddenEntityOut]:
    """List a user's hidden entities, newest first."""
    stmt = select(HiddenEntity).where(HiddenEntity.user_id == user_id)
    if entity_type is not None:
        stmt = stmt.where(HiddenEntity.entity_type == entity_type.value)
    stmt = stmt.order_by(HiddenEntity.hidden_at.desc(), HiddenEntity.id.desc())
    return [_to_out(row) for row in db.scalars(stmt).all()]


def ids_by_type(db: Session, user_id: int) -> dict[str, list[str]]:
    """Hidden entity IDs of a user grouped by entity type.

    Every known type is present, with an empty list when nothing is hidden.
    """
    result: dict[str, set[str]] = {t.value: set() for t in EntityType}
    rows = db.execute(
        select(HiddenEntity.entity_type, HiddenEntity.entity_id).where(
            HiddenEntity.user_id == user_id
        )
    ).all()
    for entity_type, entity_id in rows:
        result[entity_type].add(entity_id)
    return {t: sorted(ids) for t, ids in result.items()}


def hidden_keys_by_type(db: Session, user_id: int) -> dict[EntityType, set[EntityKey]]:
    """Hidden entity keys of a user grouped by entity type."""
    result: dict[EntityType, set[EntityKey]] = {}
    rows = db.execute(
        select(HiddenEntity.entity_type, HiddenEntity.instance_id, HiddenEntity.entity_id).where(
            HiddenEntity.user_id == user_id
        )
    ).all()
    for entity_type, instance_id, entity_id in rows:
        result.setdefault(EntityType(entity_type), set()).add((instance_id, entity_id))
    return result
