"""Exclusion statistics.

Read-only aggregates over the exclusion store. Results reflect the last
committed recompute of each user, never a pass in progress.
"""

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from curtain.db.models import EntityStats, ExcludedEntity
from curtain.schemas.exclusions import EntityStatsOut, ExclusionStatOut
from curtain.services.restrictions import ensure_user_exists


def get_exclusion_stats(db: Session) -> list[ExclusionStatOut]:
    """Count exclusion rows grouped by user, entity type and reason."""
    rows = db.execute(
        select(
            ExcludedEntity.user_id,
            ExcludedEntity.entity_type,
            ExcludedEntity.reason,
            func.count().label("count"),
        )
        .group_by(ExcludedEntity.user_id, ExcludedEntity.entity_type, ExcludedEntity.reason)
        .order_by(ExcludedEntity.user_id, ExcludedEntity.entity_type, ExcludedEntity.reason)
    ).all()

    return [
        ExclusionStatOut(user_id=user_id, entity_type=entity_type, reason=reason, count=count)
        for user_id, entity_type, reason, count in rows
    ]


def get_entity_stats(db: Session, user_id: int) -> list[EntityStatsOut]:
    """Visible entity counts of a user per entity type.

    Raises:
        NotFoundError(E_USER_NOT_FOUND): If the user does not exist.
    """
    ensure_user_exists(db, user_id)
    rows = db.scalars(
        select(EntityStats).where(EntityStats.user_id == user_id).order_by(EntityStats.entity_type)
    ).all()
    return [
        EntityStatsOut(
            user_id=row.user_id,
            entity_type=row.entity_type,
            visible_count=row.visible_count,
            updated_at=row.updated_at,
        )
        for row in rows
    ]
