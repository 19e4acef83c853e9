"""
Video file store - uploaded video blobs on local storage.

Blobs live flat in one directory and are addressed by generated names of the
form "<epoch-millis>-<random><ext>". Uploader-supplied filenames contribute
only their extension, so they can never steer a write outside the directory.
"""

import logging
import os
import re
import secrets
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from api.errors import (
    BlobIOFailure,
    BlobNotFoundOnDisk,
    InvalidStoredName,
    PayloadTooLarge,
    UnsupportedMediaType,
)
from config import MAX_UPLOAD_SIZE, UPLOAD_CHUNK_SIZE

logger = logging.getLogger(__name__)

VIDEO_MIME_PREFIX = "video/"

# Extensions are kept only when they look like a real, short file suffix
_EXTENSION_PATTERN = re.compile(r"^\.[a-z0-9]{1,10}$")
_RANDOM_UPPER_BOUND = 10**9


def is_video_mime_type(mime_type: Optional[str]) -> bool:
    """True for any video/* type, ignoring case and parameters ("video/mp4; codecs=...")."""
    if not mime_type:
        return False
    return mime_type.split(";", 1)[0].strip().lower().startswith(VIDEO_MIME_PREFIX)


def generate_stored_name(original_name: Optional[str]) -> str:
    """Time-based plus random name, preserving a well-formed original extension."""
    ext = os.path.splitext(original_name or "")[1].lower()
    if not _EXTENSION_PATTERN.match(ext):
        ext = ""
    return f"{int(time.time() * 1000)}-{secrets.randbelow(_RANDOM_UPPER_BOUND)}{ext}"


@dataclass
class SavedBlob:
    """Result of a successful save."""

    stored_name: str
    size_bytes: int


class VideoFileStore:
    """Flat directory of video blobs with streaming, size-limited writes."""

    def __init__(
        self,
        root: Union[str, Path],
        max_size: int = MAX_UPLOAD_SIZE,
        chunk_size: int = UPLOAD_CHUNK_SIZE,
    ):
        self.root = Path(root).resolve()
        self.max_size = max_size
        self.chunk_size = chunk_size

    def ensure_root(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def resolve(self, stored_name: str) -> Path:
        """
        Absolute path of a blob.

        Raises InvalidStoredName for anything that is not a plain file name
        directly inside the store directory.
        """
        if (
            not stored_name
            or stored_name in (".", "..")
            or "\x00" in stored_name
            or "/" in stored_name
            or "\\" in stored_name
            or ".." in stored_name
        ):
            raise InvalidStoredName(stored_name)

        path = (self.root / stored_name).resolve()
        if path.parent != self.root:
            raise InvalidStoredName(stored_name)
        return path

    def exists(self, stored_name: str) -> bool:
        return self.resolve(stored_name).is_file()

    async def save(self, upload, declared_mime_type: Optional[str], original_name: Optional[str]) -> SavedBlob:
        """
        Stream an upload to a new blob and return its stored name and size.

        ``upload`` is any object with an async ``read(size)`` (e.g. FastAPI's UploadFile).
        Nothing is written when the declared type is not a video type. A blob
        that grows past max_size, or fails mid-write, is removed before raising.
        """
        if not is_video_mime_type(declared_mime_type):
            raise UnsupportedMediaType(declared_mime_type)

        stored_name = generate_stored_name(original_name)
        path = self.resolve(stored_name)
        created = False
        total_size = 0

        try:
            self.ensure_root()
            # Exclusive create: never overwrite an existing blob
            with open(path, "xb") as f:
                created = True
                while True:
                    chunk = await upload.read(self.chunk_size)
                    if not chunk:
                        break
                    total_size += len(chunk)
                    if total_size > self.max_size:
                        raise PayloadTooLarge(self.max_size)
                    f.write(chunk)
                f.flush()
                os.fsync(f.fileno())
        except PayloadTooLarge:
            self._discard(path)
            logger.info(f"Rejected upload {stored_name}: exceeds {self.max_size} bytes")
            raise
        except OSError as e:
            if created:
                self._discard(path)
            logger.warning(f"Storage error writing {path}: {e}")
            raise BlobIOFailure(f"Failed to write blob {stored_name}") from e

        logger.info(f"Saved blob {stored_name} ({total_size} bytes)")
        return SavedBlob(stored_name=stored_name, size_bytes=total_size)

    def remove(self, stored_name: str) -> None:
        """
        Delete a blob.

        Raises BlobNotFoundOnDisk if it is already gone and BlobIOFailure for
        any other OS error.
        """
        path = self.resolve(stored_name)
        try:
            path.unlink()
        except FileNotFoundError as e:
            raise BlobNotFoundOnDisk(stored_name) from e
        except OSError as e:
            raise BlobIOFailure(f"Failed to remove blob {stored_name}: {e}") from e
        logger.info(f"Removed blob {stored_name}")

    def check_writable(self) -> bool:
        """
        Synchronous storage check that verifies both existence and writability.

        Intended to run in a thread pool (see api.common.check_health).
        """
        try:
            if not self.root.is_dir():
                return False
            test_file = self.root / f".health_check_{uuid.uuid4().hex}"
            test_file.write_text("health check")
            test_file.unlink()
            return True
        except OSError:
            return False

    def _discard(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Failed to clean up partial blob {path}: {e}")
