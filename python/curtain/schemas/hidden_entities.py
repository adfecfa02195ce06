"""Hidden entity schemas."""

from datetime import datetime

from pydantic import Field

from curtain.schemas.base import CamelModel

__all__ = [
    "HideEntityRequest",
    "BulkHideRequest",
    "HiddenEntityOut",
    "BulkHideOut",
    "UnhideOut",
    "UnhideAllOut",
]


class HideEntityRequest(CamelModel):
    """Request body for hiding one entity.

    instance_id "" hides the ID in every source instance.
    """

    entity_type: str = Field(..., min_length=1)
    entity_id: str = Field(..., min_length=1)
    instance_id: str = ""


class BulkHideRequest(CamelModel):
    """Request body for hiding several entities at once."""

    entities: list[HideEntityRequest] = Field(..., min_length=1)


class HiddenEntityOut(CamelModel):
    """A hidden entity record."""

    id: int
    entity_type: str
    entity_id: str
    instance_id: str
    hidden_at: datetime


class BulkHideOut(CamelModel):
    """Per-item outcome counts of a bulk hide."""

    success_count: int
    fail_count: int


class UnhideOut(CamelModel):
    """Result of unhiding one entity."""

    removed: bool


class UnhideAllOut(CamelModel):
    """Result of unhiding all entities, optionally of one type."""

    count: int
