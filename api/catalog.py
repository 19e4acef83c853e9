"""
Video catalog - persisted video records and the single "current" flag.

All flag changes run inside one transaction, so readers never observe two
current rows and a promotion never passes through an all-false state.
Promotion checks that the target exists before touching any flag.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

import sqlalchemy as sa
from databases import Database

from api.common import ensure_utc
from api.database import videos
from api.errors import StorageFailure, VideoNotFound, VideoStoreError

logger = logging.getLogger(__name__)

# Ids are signed 64-bit integers in every supported database
MIN_VIDEO_ID = -(2**63)
MAX_VIDEO_ID = 2**63 - 1


@dataclass
class VideoRecord:
    """One uploaded video. Only is_current changes after insertion."""

    stored_name: str
    original_name: str
    size_bytes: int
    uploaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    is_current: bool = False
    id: Optional[int] = None

    @property
    def url(self) -> str:
        """Public path that streams this video's blob."""
        return f"/video/{self.id}"

    @classmethod
    def from_row(cls, row) -> "VideoRecord":
        return cls(
            id=row["id"],
            stored_name=row["stored_name"],
            original_name=row["original_name"],
            size_bytes=row["size_bytes"],
            uploaded_at=ensure_utc(row["uploaded_at"]),
            is_current=bool(row["is_current"]),
        )


@asynccontextmanager
async def _storage_errors(operation: str):
    """Convert persistence-engine errors into StorageFailure, keeping domain errors intact."""
    try:
        yield
    except VideoStoreError:
        raise
    except Exception as e:
        logger.exception(f"Catalog {operation} failed: {e}")
        raise StorageFailure(f"Catalog {operation} failed") from e


class VideoCatalog:
    """
    Catalog of video records backed by the videos table.

    Usage:
        catalog = VideoCatalog(Database("sqlite:///./database.db"))
        await catalog.connect()
        video_id = await catalog.insert(VideoRecord(..., is_current=True))
        await catalog.promote_to_current(video_id)
    """

    def __init__(self, database: Database):
        self.database = database

    async def connect(self) -> None:
        if not self.database.is_connected:
            await self.database.connect()

    async def disconnect(self) -> None:
        if self.database.is_connected:
            await self.database.disconnect()

    async def insert(self, record: VideoRecord) -> int:
        """
        Add a record and return its id.

        A record inserted with is_current=True becomes the only current record;
        the clear and the insert share one transaction.
        """
        async with _storage_errors("insert"):
            async with self.database.transaction():
                if record.is_current:
                    await self._clear_current()
                video_id = await self.database.execute(
                    videos.insert().values(
                        stored_name=record.stored_name,
                        original_name=record.original_name,
                        uploaded_at=record.uploaded_at,
                        size_bytes=record.size_bytes,
                        is_current=record.is_current,
                    )
                )
        record.id = video_id
        logger.info(f"Inserted video {video_id} ({record.stored_name}, current={record.is_current})")
        return video_id

    async def list_all(self, limit: Optional[int] = None) -> List[VideoRecord]:
        """Return records newest first. The id breaks ties between equal timestamps."""
        query = videos.select().order_by(videos.c.uploaded_at.desc(), videos.c.id.desc())
        if limit is not None:
            query = query.limit(limit)
        async with _storage_errors("list"):
            rows = await self.database.fetch_all(query)
        return [VideoRecord.from_row(row) for row in rows]

    async def get(self, video_id: int) -> VideoRecord:
        if not MIN_VIDEO_ID <= video_id <= MAX_VIDEO_ID:
            raise VideoNotFound(video_id)
        async with _storage_errors("get"):
            row = await self.database.fetch_one(videos.select().where(videos.c.id == video_id))
        if row is None:
            raise VideoNotFound(video_id)
        return VideoRecord.from_row(row)

    async def get_current(self) -> Optional[VideoRecord]:
        async with _storage_errors("get_current"):
            row = await self.database.fetch_one(
                videos.select().where(videos.c.is_current == sa.true()).order_by(videos.c.id.desc()).limit(1)
            )
        return VideoRecord.from_row(row) if row else None

    async def count_current(self) -> int:
        async with _storage_errors("count_current"):
            count = await self.database.fetch_val(
                sa.select(sa.func.count()).select_from(videos).where(videos.c.is_current == sa.true())
            )
        return int(count or 0)

    async def promote_to_current(self, video_id: int) -> None:
        """
        Make video_id the only current record.

        Raises VideoNotFound before any mutation when the id does not exist,
        leaving the catalog exactly as it was.
        """
        async with _storage_errors("promote"):
            async with self.database.transaction():
                await self._require_exists(video_id)
                await self._clear_current()
                await self.database.execute(
                    videos.update().where(videos.c.id == video_id).values(is_current=True)
                )
        logger.info(f"Video {video_id} is now current")

    async def delete(self, video_id: int) -> None:
        """
        Remove a record. Deleting the current record leaves no current video
        until the next upload or promotion.
        """
        async with _storage_errors("delete"):
            async with self.database.transaction():
                await self._require_exists(video_id)
                await self.database.execute(videos.delete().where(videos.c.id == video_id))
        logger.info(f"Deleted video record {video_id}")

    async def _require_exists(self, video_id: int) -> None:
        if not MIN_VIDEO_ID <= video_id <= MAX_VIDEO_ID:
            raise VideoNotFound(video_id)
        found = await self.database.fetch_val(sa.select(videos.c.id).where(videos.c.id == video_id))
        if found is None:
            raise VideoNotFound(video_id)

    async def _clear_current(self) -> None:
        await self.database.execute(
            videos.update().where(videos.c.is_current == sa.true()).values(is_current=False)
        )
