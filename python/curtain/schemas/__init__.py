"""Pydantic schemas for request/response models.

All schemas are re-exported here for convenient imports.
"""

from curtain.schemas.exclusions import (
    EntityStatsOut,
    ExclusionStatOut,
    RecomputeAllOut,
    RecomputeFailureOut,
    RecomputeResultOut,
)
from curtain.schemas.hidden_entities import (
    BulkHideOut,
    BulkHideRequest,
    HiddenEntityOut,
    HideEntityRequest,
    UnhideAllOut,
    UnhideOut,
)
from curtain.schemas.restrictions import (
    DeleteRestrictionsOut,
    RestrictionRuleIn,
    RestrictionRuleOut,
    SetRestrictionsRequest,
)

__all__ = [
    # Restrictions
    "RestrictionRuleIn",
    "SetRestrictionsRequest",
    "RestrictionRuleOut",
    "DeleteRestrictionsOut",
    # Hidden entities
    "HideEntityRequest",
    "BulkHideRequest",
    "HiddenEntityOut",
    "BulkHideOut",
    "UnhideOut",
    "UnhideAllOut",
    # Exclusions
    "RecomputeResultOut",
    "RecomputeFailureOut",
    "RecomputeAllOut",
    "ExclusionStatOut",
    "EntityStatsOut",
]
