"""Database module for Curtain.

Provides engine creation, session management, transaction helpers, and ORM models.
"""

from curtain.db.engine import create_db_engine, get_engine
from curtain.db.models import (
    Base,
    EntityRelation,
    EntityStats,
    EntityType,
    ExcludedEntity,
    ExclusionReason,
    HiddenEntity,
    MirroredEntity,
    RestrictionMode,
    RestrictionRule,
    User,
    UserRole,
)
from curtain.db.session import get_db, transaction

__all__ = [
    # Engine and session
    "create_db_engine",
    "get_engine",
    "get_db",
    "transaction",
    # Base
    "Base",
    # Enums
    "EntityType",
    "RestrictionMode",
    "ExclusionReason",
    "UserRole",
    # Models
    "User",
    "RestrictionRule",
    "HiddenEntity",
    "ExcludedEntity",
    "EntityStats",
    "MirroredEntity",
    "EntityRelation",
]
