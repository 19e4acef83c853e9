from datetime import datetime, timezone
from typing import Optional

import sqlalchemy as sa
from databases import Database

from config import DATABASE_URL

metadata = sa.MetaData()

# Column length of videos.original_name; longer display names are truncated on upload
MAX_ORIGINAL_NAME_LENGTH = 255


# Video catalog: one row per uploaded video.
#
# FIELD SEMANTICS:
# ----------------
# - stored_name: generated blob key inside the uploads directory (never user-controlled)
# - original_name: display name supplied by the uploader (untrusted, never used as a path)
# - uploaded_at: set once at insertion time
# - size_bytes: byte length of the stored blob
# - is_current: single-select flag for the landing page
#
# INVARIANT:
# ----------
# At most one row has is_current = true. Zero is possible after the current
# video is deleted; the landing page then shows no current video.
# Enforced by api/catalog.py, which performs every flag change inside a transaction.
videos = sa.Table(
    "videos",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("stored_name", sa.String(255), unique=True, nullable=False),
    sa.Column("original_name", sa.String(MAX_ORIGINAL_NAME_LENGTH), nullable=False),
    sa.Column(
        "uploaded_at",
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    ),
    sa.Column(
        "size_bytes",
        sa.BigInteger,
        sa.CheckConstraint("size_bytes >= 0", name="ck_videos_size_bytes_non_negative"),
        nullable=False,
    ),
    sa.Column("is_current", sa.Boolean, nullable=False, default=False),
    sa.Index("ix_videos_uploaded_at", "uploaded_at"),
    sa.Index("ix_videos_is_current", "is_current"),
)

# Generic key/value storage reserved for future site settings.
# Nothing reads or writes it yet.
site_settings = sa.Table(
    "site_settings",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True),
    sa.Column("key", sa.String(255), unique=True, nullable=False),
    sa.Column("value", sa.Text, nullable=True),
    sa.Column("updated_at", sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)),
)


def create_database(url: Optional[str] = None) -> Database:
    """Create an (unconnected) async database handle for the given URL."""
    return Database(url or DATABASE_URL)


def create_tables(url: Optional[str] = None):
    """
    Create database tables directly using SQLAlchemy metadata.
    This creates all tables if they don't exist.
    """
    engine = sa.create_engine(url or DATABASE_URL)
    metadata.create_all(engine)
    engine.dispose()


if __name__ == "__main__":
    create_tables()
    print("Database tables created successfully!")
