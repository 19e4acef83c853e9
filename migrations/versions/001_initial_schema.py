"""initial_schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

Creates the video catalog and the site settings table.
Databases created by create_tables() already match; mark them with 'alembic stamp 001'.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "videos",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("stored_name", sa.String(255), unique=True, nullable=False),
        sa.Column("original_name", sa.String(255), nullable=False),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("size_bytes", sa.BigInteger, nullable=False),
        sa.Column("is_current", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.CheckConstraint("size_bytes >= 0", name="ck_videos_size_bytes_non_negative"),
    )
    op.create_index("ix_videos_uploaded_at", "videos", ["uploaded_at"])
    op.create_index("ix_videos_is_current", "videos", ["is_current"])

    op.create_table(
        "site_settings",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("key", sa.String(255), unique=True, nullable=False),
        sa.Column("value", sa.Text, nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    op.drop_table("site_settings")
    op.drop_index("ix_videos_is_current", table_name="videos")
    op.drop_index("ix_videos_uploaded_at", table_name="videos")
    op.drop_table("videos")
