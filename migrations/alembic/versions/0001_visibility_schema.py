"""Visibility schema - users, restriction rules, hidden/excluded entities, stats, mirror

Revision ID: 0001
Revises:
Create Date: 2026-10-16

Creates the tables of the content visibility engine plus the mirror tables
the sync pipeline fills. Enum-valued columns are Text with CHECK constraints.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

ENTITY_TYPES = "('scene', 'performer', 'studio', 'tag', 'gallery', 'image', 'group')"


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.TIMESTAMP(timezone=True),
        server_default=sa.text("CURRENT_TIMESTAMP"),
        nullable=False,
    )


def upgrade() -> None:
    # ==========================================================================
    # users table
    # ==========================================================================
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("username", sa.Text(), nullable=False),
        sa.Column("role", sa.Text(), server_default="user", nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username"),
        sa.CheckConstraint("role IN ('admin', 'user')", name="ck_users_role"),
    )

    # ==========================================================================
    # restriction_rules table
    # ==========================================================================
    op.create_table(
        "restriction_rules",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("entity_type", sa.Text(), nullable=False),
        sa.Column("mode", sa.Text(), nullable=False),
        sa.Column("entity_ids", sa.JSON(), nullable=False),
        sa.Column("restrict_empty", sa.Boolean(), server_default=sa.false(), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", "entity_type", name="uq_restriction_rules_user_type"),
        sa.CheckConstraint(
            f"entity_type IN {ENTITY_TYPES}", name="ck_restriction_rules_entity_type"
        ),
        sa.CheckConstraint("mode IN ('INCLUDE', 'EXCLUDE')", name="ck_restriction_rules_mode"),
    )

    # ==========================================================================
    # hidden_entities table
    # ==========================================================================
    op.create_table(
        "hidden_entities",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("entity_type", sa.Text(), nullable=False),
        sa.Column("entity_id", sa.Text(), nullable=False),
        sa.Column("instance_id", sa.Text(), server_default="", nullable=False),
        _timestamp("hidden_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "user_id",
            "entity_type",
            "entity_id",
            "instance_id",
            name="uq_hidden_entities_user_entity",
        ),
        sa.CheckConstraint(
            f"entity_type IN {ENTITY_TYPES}", name="ck_hidden_entities_entity_type"
        ),
    )
    op.create_index("ix_hidden_entities_user_type", "hidden_entities", ["user_id", "entity_type"])

    # ==========================================================================
    # excluded_entities table
    # ==========================================================================
    op.create_table(
        "excluded_entities",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("entity_type", sa.Text(), nullable=False),
        sa.Column("entity_id", sa.Text(), nullable=False),
        sa.Column("instance_id", sa.Text(), server_default="", nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        _timestamp("computed_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "user_id",
            "entity_type",
            "entity_id",
            "instance_id",
            name="uq_excluded_entities_user_entity",
        ),
        sa.CheckConstraint(
            "reason IN ('restricted', 'hidden', 'cascade')", name="ck_excluded_entities_reason"
        ),
    )
    op.create_index(
        "ix_excluded_entities_user_type", "excluded_entities", ["user_id", "entity_type"]
    )

    # ==========================================================================
    # entity_stats table
    # ==========================================================================
    op.create_table(
        "entity_stats",
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("entity_type", sa.Text(), nullable=False),
        sa.Column("visible_count", sa.Integer(), server_default="0", nullable=False),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("user_id", "entity_type"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )

    # ==========================================================================
    # mirror tables (written by the sync pipeline)
    # ==========================================================================
    op.create_table(
        "mirrored_entities",
        sa.Column("instance_id", sa.Text(), nullable=False),
        sa.Column("entity_type", sa.Text(), nullable=False),
        sa.Column("entity_id", sa.Text(), nullable=False),
        sa.Column("deleted_at", sa.TIMESTAMP(timezone=True), nullable=True),
        _timestamp("synced_at"),
        sa.PrimaryKeyConstraint("instance_id", "entity_type", "entity_id"),
    )
    op.create_index("ix_mirrored_entities_type", "mirrored_entities", ["entity_type"])

    op.create_table(
        "entity_relations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("instance_id", sa.Text(), nullable=False),
        sa.Column("entity_type", sa.Text(), nullable=False),
        sa.Column("entity_id", sa.Text(), nullable=False),
        sa.Column("relation", sa.Text(), nullable=False),
        sa.Column("related_type", sa.Text(), nullable=False),
        sa.Column("related_id", sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "instance_id",
            "entity_type",
            "entity_id",
            "relation",
            "related_id",
            name="uq_entity_relations_edge",
        ),
    )
    op.create_index(
        "ix_entity_relations_subject", "entity_relations", ["entity_type", "relation"]
    )
    op.create_index(
        "ix_entity_relations_related", "entity_relations", ["related_type", "related_id"]
    )


def downgrade() -> None:
    op.drop_index("ix_entity_relations_related", table_name="entity_relations")
    op.drop_index("ix_entity_relations_subject", table_name="entity_relations")
    op.drop_table("entity_relations")
    op.drop_index("ix_mirrored_entities_type", table_name="mirrored_entities")
    op.drop_table("mirrored_entities")
    op.drop_table("entity_stats")
    op.drop_index("ix_excluded_entities_user_type", table_name="excluded_entities")
    op.drop_table("excluded_entities")
    op.drop_index("ix_hidden_entities_user_type", table_name="hidden_entities")
    op.drop_table("hidden_entities")
    op.drop_table("restriction_rules")
    op.drop_table("users")
