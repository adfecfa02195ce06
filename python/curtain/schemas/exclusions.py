"""Exclusion recompute and statistics schemas."""

from datetime import datetime

from curtain.schemas.base import CamelModel

__all__ = [
    "RecomputeResultOut",
    "RecomputeFailureOut",
    "RecomputeAllOut",
    "ExclusionStatOut",
    "EntityStatsOut",
]


class RecomputeResultOut(CamelModel):
    """Summary of one user's committed recompute pass."""

    user_id: int
    total: int
    by_reason: dict[str, int]
    by_type: dict[str, int]
    cascade_passes: int
    duration_ms: int


class RecomputeFailureOut(CamelModel):
    """One user's failed recompute inside recompute-all."""

    user_id: int
    error: str


class RecomputeAllOut(CamelModel):
    """Outcome of recomputing every user."""

    success: int
    failed: int
    errors: list[RecomputeFailureOut]


class ExclusionStatOut(CamelModel):
    """Count of exclusion rows for one (user, entity type, reason)."""

    user_id: int
    entity_type: str
    reason: str
    count: int


class EntityStatsOut(CamelModel):
    """Visible entity count for one (user, entity type)."""

    user_id: int
    entity_type: str
    visible_count: int
    updated_at: datetime
