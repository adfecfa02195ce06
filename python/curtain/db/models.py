"""SQLAlchemy ORM models for Curtain.

Defines all database tables using SQLAlchemy 2.x declarative patterns.
Enum-valued columns are stored as Text guarded by CHECK constraints so the
schema stays portable between PostgreSQL and SQLite.
"""

from datetime import UTC, datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def _utcnow() -> datetime:
    return datetime.now(UTC)


# =============================================================================
# Enums
# =============================================================================


class EntityType(str, PyEnum):
    """Closed set of mirrored entity types.

    Values:
        scene: media item
        performer: performer
        studio: studio
        tag: tag
        gallery: image collection
        image: image item
        group: scene collection
    """

    scene = "scene"
    performer = "performer"
    studio = "studio"
    tag = "tag"
    gallery = "gallery"
    image = "image"
    group = "group"


class RestrictionMode(str, PyEnum):
    """How a restriction rule's entity list is interpreted."""

    INCLUDE = "INCLUDE"
    EXCLUDE = "EXCLUDE"


class ExclusionReason(str, PyEnum):
    """Why an entity is excluded. Informational only."""

    restricted = "restricted"
    hidden = "hidden"
    cascade = "cascade"


class UserRole(str, PyEnum):
    """Roles a user can hold."""

    admin = "admin"
    user = "user"


ENTITY_TYPE_VALUES = tuple(t.value for t in EntityType)


def _in_check(column: str, values: tuple[str, ...]) -> str:
    quoted = ", ".join(f"'{v}'" for v in values)
    return f"{column} IN ({quoted})"


# =============================================================================
# Models
# =============================================================================


class User(Base):
    """User account model.

    Accounts are managed elsewhere; this table is read for principal lookup
    and for enumerating users during recompute-all.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    role: Mapped[str] = mapped_column(Text, nullable=False, default=UserRole.user.value)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint(_in_check("role", ("admin", "user")), name="ck_users_role"),
    )

    restriction_rules: Mapped[list["RestrictionRule"]] = relationship(
        "RestrictionRule", back_populates="user", cascade="all, delete-orphan"
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin.value


class RestrictionRule(Base):
    """Admin-authored allow/deny rule for one (user, entity type)."""

    __tablename__ = "restriction_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    entity_type: Mapped[str] = mapped_column(Text, nullable=False)
    mode: Mapped[str] = mapped_column(Text, nullable=False)
    entity_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    restrict_empty: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("user_id", "entity_type", name="uq_restriction_rules_user_type"),
        CheckConstraint(
            _in_check("entity_type", ENTITY_TYPE_VALUES),
            name="ck_restriction_rules_entity_type",
        ),
        CheckConstraint(
            _in_check("mode", ("INCLUDE", "EXCLUDE")),
            name="ck_restriction_rules_mode",
        ),
    )

    user: Mapped["User"] = relationship("User", back_populates="restriction_rules")


class HiddenEntity(Base):
    """User-initiated per-entity opt-out.

    entity_id is an opaque reference and need not exist in the mirror.
    instance_id = '' hides the id in every source instance.
    """

    __tablename__ = "hidden_entities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    entity_type: Mapped[str] = mapped_column(Text, nullable=False)
    entity_id: Mapped[str] = mapped_column(Text, nullable=False)
    instance_id: Mapped[str] = mapped_column(Text, nullable=False, default="")
    hidden_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "entity_type",
            "entity_id",
            "instance_id",
            name="uq_hidden_entities_user_entity",
        ),
        CheckConstraint(
            _in_check("entity_type", ENTITY_TYPE_VALUES),
            name="ck_hidden_entities_entity_type",
        ),
        Index("ix_hidden_entities_user_type", "user_id", "entity_type"),
    )


class ExcludedEntity(Base):
    """Materialized exclusion row consumed by list/search queries."""

    __tablename__ = "excluded_entities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    entity_type: Mapped[str] = mapped_column(Text, nullable=False)
    entity_id: Mapped[str] = mapped_column(Text, nullable=False)
    instance_id: Mapped[str] = mapped_column(Text, nullable=False, default="")
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    computed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "entity_type",
            "entity_id",
            "instance_id",
            name="uq_excluded_entities_user_entity",
        ),
        CheckConstraint(
            _in_check("reason", ("restricted", "hidden", "cascade")),
            name="ck_excluded_entities_reason",
        ),
        Index("ix_excluded_entities_user_type", "user_id", "entity_type"),
    )


class EntityStats(Base):
    """Visible entity count per (user, entity type) as of the last recompute."""

    __tablename__ = "entity_stats"

    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    entity_type: Mapped[str] = mapped_column(Text, primary_key=True)
    visible_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
    )


class MirroredEntity(Base):
    """An entity known to the local mirror of one source instance."""

    __tablename__ = "mirrored_entities"

    instance_id: Mapped[str] = mapped_column(Text, primary_key=True)
    entity_type: Mapped[str] = mapped_column(Text, primary_key=True)
    entity_id: Mapped[str] = mapped_column(Text, primary_key=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    synced_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (Index("ix_mirrored_entities_type", "entity_type"),)


class EntityRelation(Base):
    """Directed relationship edge inside one source instance.

    (entity_type, entity_id) references (related_type, related_id) through a
    named relation, e.g. scene S1 --performers--> performer P1.
    """

    __tablename__ = "entity_relations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    instance_id: Mapped[str] = mapped_column(Text, nullable=False)
    entity_type: Mapped[str] = mapped_column(Text, nullable=False)
    entity_id: Mapped[str] = mapped_column(Text, nullable=False)
    relation: Mapped[str] = mapped_column(Text, nullable=False)
    related_type: Mapped[str] = mapped_column(Text, nullable=False)
    related_id: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "instance_id",
            "entity_type",
            "entity_id",
            "relation",
            "related_id",
            name="uq_entity_relations_edge",
        ),
        Index("ix_entity_relations_subject", "entity_type", "relation"),
        Index("ix_entity_relations_related", "related_type", "related_id"),
    )
