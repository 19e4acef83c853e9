"""
Video library - the operations behind the HTTP routes.

Coordinates the catalog (records and the current flag) with the file store
(blobs on disk). A failed upload never leaves a catalog record without a
blob, and a blob that cannot be removed never blocks deleting its record.
"""

import logging
from pathlib import Path
from typing import List, Optional, Tuple

from api.catalog import VideoCatalog, VideoRecord
from api.database import MAX_ORIGINAL_NAME_LENGTH
from api.errors import BlobNotFoundOnDisk, VideoStoreError, truncate_string
from api.file_store import VideoFileStore

logger = logging.getLogger(__name__)


class VideoLibrary:
    def __init__(self, catalog: VideoCatalog, file_store: VideoFileStore):
        self.catalog = catalog
        self.file_store = file_store

    async def upload(self, upload, declared_mime_type: Optional[str], original_name: Optional[str]) -> VideoRecord:
        """
        Store an upload and make it the current video.

        Validation failures (type, size) propagate before any record exists.
        If recording fails after the blob was written, the blob is removed on
        a best-effort basis and the original error is re-raised.
        """
        saved = await self.file_store.save(upload, declared_mime_type, original_name)

        record = VideoRecord(
            stored_name=saved.stored_name,
            original_name=truncate_string(original_name or saved.stored_name, MAX_ORIGINAL_NAME_LENGTH),
            size_bytes=saved.size_bytes,
            is_current=True,
        )
        try:
            await self.catalog.insert(record)
        except Exception:
            try:
                self.file_store.remove(saved.stored_name)
            except VideoStoreError as cleanup_error:
                logger.warning(f"Failed to remove orphaned blob {saved.stored_name}: {cleanup_error}")
            raise

        return record

    async def list_videos(self, limit: Optional[int] = None) -> List[VideoRecord]:
        return await self.catalog.list_all(limit=limit)

    async def get_current(self) -> Optional[VideoRecord]:
        return await self.catalog.get_current()

    async def set_current(self, video_id: int) -> None:
        await self.catalog.promote_to_current(video_id)

    async def delete(self, video_id: int) -> VideoRecord:
        """
        Remove a video's blob and then its record.

        Blob removal problems are logged and do not stop the record deletion.
        Raises VideoNotFound when the id is unknown.
        """
        record = await self.catalog.get(video_id)

        try:
            self.file_store.remove(record.stored_name)
        except BlobNotFoundOnDisk:
            logger.warning(f"Blob {record.stored_name} for video {video_id} was already missing")
        except VideoStoreError as e:
            logger.error(f"Failed to remove blob {record.stored_name} for video {video_id}: {e}")

        await self.catalog.delete(video_id)
        return record

    async def open_blob(self, video_id: int) -> Tuple[VideoRecord, Path]:
        """
        Record and on-disk path for streaming.

        Raises VideoNotFound for an unknown id and BlobNotFoundOnDisk when the
        record exists but its blob does not.
        """
        record = await self.catalog.get(video_id)
        if not self.file_store.exists(record.stored_name):
            logger.error(f"Video {video_id} has no blob on disk ({record.stored_name})")
            raise BlobNotFoundOnDisk(record.stored_name)
        return record, self.file_store.resolve(record.stored_name)
