"""Materialized exclusion store.

Owns the excluded_entities and entity_stats tables. Write helpers here never
commit; callers wrap them in transaction(db) so a full replace is atomic.
Read helpers back the filter/query layer.

Every write path starts with lock_user_exclusions. Concurrent writers for one
user, in any process, wait on that row lock.
"""

from collections.abc import Mapping
from datetime import datetime

from sqlalchemy import delete, or_, select
from sqlalchemy.orm import Session

from curtain.db.models import EntityStats, EntityType, ExcludedEntity, ExclusionReason, User
from curtain.services.cascade import REASON_PRECEDENCE, ExclusionSet
from curtain.services.entity_graph import GLOBAL_INSTANCE, EntityKey


def lock_user_exclusions(db: Session, user_id: int) -> None:
    """Lock the user row (FOR UPDATE) until the current transaction ends.

    Must be called inside transaction(db), before touching excluded_entities.
    SQLite has no row locks; its single writer already serializes the write.
    """
    db.execute(select(User.id).where(User.id == user_id).with_for_update())


def replace_user_exclusions(
    db: Session,
    user_id: int,
    entries: Mapping[EntityType, Mapping[EntityKey, ExclusionReason]],
    computed_at: datetime,
) -> int:
    """Delete every exclusion row of a user and insert the new set.

    Returns:
        Number of rows inserted.
    """
    db.execute(delete(ExcludedEntity).where(ExcludedEntity.user_id == user_id))

    rows = [
        {
            "user_id": user_id,
            "entity_type": entity_type.value,
            "instance_id": instance_id,
            "entity_id": entity_id,
            "reason": reason.value,
            "computed_at": computed_at,
        }
        for entity_type, keyed in entries.items()
        for (instance_id, entity_id), reason in sorted(keyed.items())
    ]
    if rows:
        db.execute(ExcludedEntity.__table__.insert(), rows)
    return len(rows)


def upsert_entity_stats(
    db: Session,
    user_id: int,
    visible_counts: Mapping[EntityType, int],
    updated_at: datetime,
) -> None:
    """Write the visible count of every entity type for a user."""
    for entity_type, visible_count in visible_counts.items():
        stats = db.get(EntityStats, (user_id, entity_type.value))
        if stats is None:
            db.add(
                EntityStats(
                    user_id=user_id,
                    entity_type=entity_type.value,
                    visible_count=visible_count,
                    updated_at=updated_at,
                )
            )
        else:
            stats.visible_count = visible_count
            stats.updated_at = updated_at
    db.flush()


def insert_exclusion_if_absent(
    db: Session,
    user_id: int,
    entity_type: EntityType,
    key: EntityKey,
    reason: ExclusionReason,
    computed_at: datetime,
) -> bool:
    """Insert one exclusion row unless the key is already covered.

    A covering row (the same key, or the global row of the same ID) keeps its
    place but takes the new reason when that reason ranks higher. A global key
    replaces the scoped rows of its ID and keeps the best of their reasons.
    Returns True if a row was inserted.
    """
    instance_id, entity_id = key
    rows = db.scalars(
        select(ExcludedEntity).where(
            ExcludedEntity.user_id == user_id,
            ExcludedEntity.entity_type == entity_type.value,
            ExcludedEntity.entity_id == entity_id,
        )
    ).all()
    by_instance = {row.instance_id: row for row in rows}
    existing = by_instance.get(GLOBAL_INSTANCE) or by_instance.get(instance_id)

    if existing is not None and instance_id != GLOBAL_INSTANCE:
        _upgrade_reason(existing, reason, computed_at)
        return False

    if instance_id == GLOBAL_INSTANCE:
        for row in rows:
            if row is existing:
                continue
            if REASON_PRECEDENCE[ExclusionReason(row.reason)] < REASON_PRECEDENCE[reason]:
                reason = ExclusionReason(row.reason)
            db.delete(row)
        if existing is not None:
            _upgrade_reason(existing, reason, computed_at)
            db.flush()
            return False

    db.add(
        ExcludedEntity(
            user_id=user_id,
            entity_type=entity_type.value,
            entity_id=entity_id,
            instance_id=instance_id,
            reason=reason.value,
            computed_at=computed_at,
        )
    )
    db.flush()
    return True


def _upgrade_reason(row: ExcludedEntity, reason: ExclusionReason, computed_at: datetime) -> None:
    if REASON_PRECEDENCE[reason] < REASON_PRECEDENCE[ExclusionReason(row.reason)]:
        row.reason = reason.value
        row.computed_at = computed_at


def excluded_ids(
    db: Session,
    user_id: int,
    entity_type: EntityType,
    instance_id: str | None = None,
) -> set[str]:
    """IDs of a type excluded for a user.

    With an instance, returns IDs excluded in that instance or globally.
    """
    stmt = select(ExcludedEntity.entity_id).where(
        ExcludedEntity.user_id == user_id,
        ExcludedEntity.entity_type == entity_type.value,
    )
    if instance_id is not None:
        stmt = stmt.where(
            or_(
                ExcludedEntity.instance_id == instance_id,
                ExcludedEntity.instance_id == GLOBAL_INSTANCE,
            )
        )
    return set(db.scalars(stmt).all())


def load_exclusion_set(db: Session, user_id: int) -> ExclusionSet:
    """Rebuild the committed exclusion set of a user."""
    excluded = ExclusionSet()
    rows = db.execute(
        select(
            ExcludedEntity.entity_type,
            ExcludedEntity.instance_id,
            ExcludedEntity.entity_id,
            ExcludedEntity.reason,
        ).where(ExcludedEntity.user_id == user_id)
    ).all()
    for entity_type, instance_id, entity_id, reason in rows:
        excluded.add(EntityType(entity_type), (instance_id, entity_id), ExclusionReason(reason))
    return excluded
