"""
Error types for the video catalog and blob storage, plus message helpers.

Store-layer errors carry internal detail for logging only; the HTTP layer
maps them to generic client-facing messages (see api/app.py).
"""

from typing import Optional


class VideoStoreError(Exception):
    """Base class for catalog and blob storage errors."""

    def __init__(self, message: str = "Video store error"):
        self.message = message
        super().__init__(self.message)


class VideoNotFound(VideoStoreError):
    """Raised when no catalog record exists for a video id."""

    def __init__(self, video_id: int):
        self.video_id = video_id
        super().__init__(f"Video {video_id} not found")


class UnsupportedMediaType(VideoStoreError):
    """Raised when an upload does not declare a video MIME type."""

    def __init__(self, mime_type: Optional[str]):
        self.mime_type = mime_type
        super().__init__(f"Unsupported media type: {mime_type!r}")


class PayloadTooLarge(VideoStoreError):
    """Raised when an upload exceeds the configured maximum size."""

    def __init__(self, max_size: int):
        self.max_size = max_size
        super().__init__(f"Upload exceeds maximum size of {max_size} bytes")


class StorageFailure(VideoStoreError):
    """Raised when the persistence engine fails a read or write."""

    pass


class BlobIOFailure(VideoStoreError):
    """Raised when a blob cannot be written, read, or removed."""

    pass


class BlobNotFoundOnDisk(BlobIOFailure):
    """Raised when a blob expected on disk is missing."""

    def __init__(self, stored_name: str):
        self.stored_name = stored_name
        super().__init__(f"Blob {stored_name!r} not found on disk")


class InvalidStoredName(BlobIOFailure):
    """Raised when a stored name would escape the blob directory."""

    def __init__(self, stored_name: str):
        self.stored_name = stored_name
        super().__init__(f"Invalid stored name {stored_name!r}")


def truncate_string(value: Optional[str], max_length: int, suffix: str = "...") -> Optional[str]:
    """
    Truncate a string to max_length characters, appending suffix when cut.

    Returns None unchanged so callers can pass optional values straight through.
    """
    if value is None:
        return None
    if len(value) <= max_length:
        return value
    if max_length <= len(suffix):
        return value[:max_length]
    return value[: max_length - len(suffix)] + suffix


def format_size(size_bytes: int) -> str:
    """Format a byte count for messages, e.g. 524288000 -> '500 MB'."""
    size = float(size_bytes)
    for unit in ("bytes", "KB", "MB", "GB"):
        if size < 1024 or unit == "GB":
            if unit == "bytes":
                return f"{int(size)} bytes"
            return f"{size:.0f} {unit}"
        size /= 1024
    return f"{size:.0f} GB"
