"""
Tests for error types, error-to-HTTP mapping and the handle_api_exceptions decorator.
"""

import logging

import pytest
from fastapi import HTTPException

from api.errors import (
    BlobIOFailure,
    BlobNotFoundOnDisk,
    InvalidStoredName,
    PayloadTooLarge,
    StorageFailure,
    UnsupportedMediaType,
    VideoNotFound,
    VideoStoreError,
    format_size,
    truncate_string,
)
from api.exception_utils import GENERIC_ERROR_DETAIL, handle_api_exceptions, http_error_for


class TestErrorHierarchy:
    """All store errors share one base class."""

    @pytest.mark.parametrize(
        "error",
        [
            VideoNotFound(1),
            UnsupportedMediaType("text/plain"),
            PayloadTooLarge(100),
            StorageFailure("db down"),
            BlobIOFailure("disk full"),
            BlobNotFoundOnDisk("a.mp4"),
            InvalidStoredName("../a"),
        ],
    )
    def test_is_video_store_error(self, error):
        """Every error is a VideoStoreError with a message."""
        assert isinstance(error, VideoStoreError)
        assert error.message


class TestHttpErrorFor:
    """Tests for http_error_for mapping."""

    def test_not_found(self):
        assert http_error_for(VideoNotFound(1)) == (404, "Video not found")

    def test_unsupported_media_type(self):
        assert http_error_for(UnsupportedMediaType("text/plain")) == (415, "Only video files are allowed")

    def test_payload_too_large(self):
        """The 413 message names the limit in readable units."""
        status_code, detail = http_error_for(PayloadTooLarge(500 * 1024 * 1024))
        assert status_code == 413
        assert "500 MB" in detail

    @pytest.mark.parametrize(
        "error",
        [StorageFailure("sqlite: disk I/O error"), BlobIOFailure("EACCES"), InvalidStoredName("../x")],
    )
    def test_internal_errors_are_generic(self, error):
        """Storage and blob failures never leak internal detail."""
        assert http_error_for(error) == (500, GENERIC_ERROR_DETAIL)


class TestHandleAPIExceptions:
    """Test the handle_api_exceptions decorator."""

    @pytest.mark.asyncio
    async def test_reraises_http_exception(self):
        """HTTPExceptions should always be re-raised."""

        @handle_api_exceptions("test_operation")
        async def failing_func():
            raise HTTPException(status_code=400, detail="No video file uploaded")

        with pytest.raises(HTTPException) as exc_info:
            await failing_func()

        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == "No video file uploaded"

    @pytest.mark.asyncio
    async def test_reraises_store_errors(self):
        """Store errors pass through for the app's exception handlers."""

        @handle_api_exceptions("test_operation")
        async def failing_func():
            raise VideoNotFound(7)

        with pytest.raises(VideoNotFound):
            await failing_func()

    @pytest.mark.asyncio
    async def test_converts_generic_exception_to_http(self, caplog):
        """Unexpected exceptions become a sanitized HTTPException and are logged."""

        @handle_api_exceptions("test_operation", "Operation failed", 500)
        async def failing_func():
            raise ValueError("secret internal detail")

        with caplog.at_level(logging.ERROR, logger="api.exception_utils"):
            with pytest.raises(HTTPException) as exc_info:
                await failing_func()

        assert exc_info.value.status_code == 500
        assert exc_info.value.detail == "Operation failed"
        assert "test_operation" in caplog.text

    @pytest.mark.asyncio
    async def test_no_logging_when_disabled(self, caplog):
        """log_errors=False suppresses the log entry."""

        @handle_api_exceptions("quiet_operation", log_errors=False)
        async def failing_func():
            raise ValueError("boom")

        with caplog.at_level(logging.ERROR, logger="api.exception_utils"):
            with pytest.raises(HTTPException):
                await failing_func()

        assert "quiet_operation" not in caplog.text

    @pytest.mark.asyncio
    async def test_returns_value(self):
        """Successful calls return their result unchanged."""

        @handle_api_exceptions("test_operation")
        async def ok_func(x):
            return x * 2

        assert await ok_func(21) == 42

    def test_preserves_signature_metadata(self):
        """The wrapper keeps the wrapped function's name for FastAPI introspection."""

        @handle_api_exceptions("test_operation")
        async def named_endpoint(video_id: int):
            return video_id

        assert named_endpoint.__name__ == "named_endpoint"
        assert named_endpoint.__wrapped__ is not None


class TestTruncateString:
    """Tests for truncate_string."""

    def test_none_passthrough(self):
        assert truncate_string(None, 10) is None

    def test_short_string_unchanged(self):
        assert truncate_string("short", 10) == "short"

    def test_long_string_truncated_with_suffix(self):
        result = truncate_string("a" * 50, 10)
        assert result == "aaaaaaa..."
        assert len(result) == 10

    def test_tiny_limit(self):
        """Limits shorter than the suffix cut without a suffix."""
        assert truncate_string("abcdef", 2) == "ab"


class TestFormatSize:
    """Tests for format_size."""

    @pytest.mark.parametrize(
        "size,expected",
        [
            (0, "0 bytes"),
            (512, "512 bytes"),
            (2048, "2 KB"),
            (500 * 1024 * 1024, "500 MB"),
            (3 * 1024**3, "3 GB"),
        ],
    )
    def test_format(self, size, expected):
        assert format_size(size) == expected
