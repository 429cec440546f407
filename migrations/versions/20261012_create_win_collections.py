"""Create win_collections table.

Revision ID: 20261012_create_win_collections
Revises:
Create Date: 2026-10-12
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "20261012_create_win_collections"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "win_collections",
        sa.Column("session_id", sa.String(length=320), primary_key=True),
        sa.Column(
            "wins",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=False,
            server_default=sa.text("'[]'"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "ix_win_collections_updated_at", "win_collections", ["updated_at"]
    )


def downgrade() -> None:
    op.drop_index("ix_win_collections_updated_at", table_name="win_collections")
    op.drop_table("win_collections")
