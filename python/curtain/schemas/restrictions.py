"""Restriction rule schemas.

Contains request and response models for the administrative restriction endpoints.
entity_type and mode are accepted as plain strings and validated by the service
so that unknown values map to specific error codes.
"""

from datetime import datetime

from pydantic import Field

from curtain.schemas.base import CamelModel

__all__ = [
    "RestrictionRuleIn",
    "SetRestrictionsRequest",
    "RestrictionRuleOut",
    "DeleteRestrictionsOut",
]


# =============================================================================
# Request Schemas
# =============================================================================


class RestrictionRuleIn(CamelModel):
    """One rule in a full-replace payload."""

    entity_type: str = Field(..., min_length=1)
    mode: str = Field(..., min_length=1)
    entity_ids: list[str] = Field(default_factory=list)
    restrict_empty: bool = False


class SetRestrictionsRequest(CamelModel):
    """Request body for replacing all of a user's rules."""

    restrictions: list[RestrictionRuleIn]


# =============================================================================
# Response Schemas
# =============================================================================


class RestrictionRuleOut(CamelModel):
    """A stored restriction rule."""

    user_id: int
    entity_type: str
    mode: str
    entity_ids: list[str]
    restrict_empty: bool
    created_at: datetime
    updated_at: datetime


class DeleteRestrictionsOut(CamelModel):
    """Result of clearing a user's rules."""

    deleted: int
