"""Initial schema: links

Revision ID: 0001
Revises: None
Create Date: 2026-10-19 00:00:00
"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | None = None
depends_on: str | None = None


def _table_exists(name: str) -> bool:
    """Check whether a table already exists in the database."""
    conn = op.get_bind()
    result = conn.execute(
        sa.text("SELECT 1 FROM sqlite_master WHERE type='table' AND name=:n"),
        {"n": name},
    )
    return result.fetchone() is not None


def upgrade() -> None:
    # Guarded so that databases created by create_all() or seeded from an
    # older copy can be stamped and upgraded alike.
    if not _table_exists("links"):
        op.create_table(
            "links",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(length=20), nullable=True),
            sa.Column("href", sa.String(), nullable=False),
            sa.Column("img", sa.String(), nullable=True),
            sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
            sa.UniqueConstraint("position"),
            sqlite_autoincrement=True,
        )


def downgrade() -> None:
    op.drop_table("links")
