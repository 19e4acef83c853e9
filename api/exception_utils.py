"""
Standardized exception handling utilities.

Maps store-layer errors to HTTP responses with sanitized client messages,
and provides a decorator that keeps unexpected errors from leaking detail.
"""

import functools
import logging
from typing import Any, Callable, Tuple, TypeVar

from fastapi import HTTPException
from fastapi.responses import JSONResponse

from api.errors import (
    PayloadTooLarge,
    UnsupportedMediaType,
    VideoNotFound,
    VideoStoreError,
    format_size,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

GENERIC_ERROR_DETAIL = "Internal server error"


def http_error_for(exc: VideoStoreError) -> Tuple[int, str]:
    """Status code and client-facing message for a store-layer error."""
    if isinstance(exc, VideoNotFound):
        return 404, "Video not found"
    if isinstance(exc, UnsupportedMediaType):
        return 415, "Only video files are allowed"
    if isinstance(exc, PayloadTooLarge):
        return 413, f"File too large. Maximum upload size is {format_size(exc.max_size)}"
    return 500, GENERIC_ERROR_DETAIL


def error_response(status_code: int, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail})


def handle_api_exceptions(
    operation_name: str,
    error_detail: str = GENERIC_ERROR_DETAIL,
    status_code: int = 500,
    log_errors: bool = True,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator for standardized exception handling in API endpoints.

    HTTPExceptions and store-layer errors pass through untouched (the app's
    exception handlers translate the latter). Anything else is logged and
    turned into an HTTPException with a sanitized message.

    Example:
        @handle_api_exceptions("video_upload", "Failed to upload video")
        async def upload_video(...):
            ...
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            try:
                return await func(*args, **kwargs)
            except (HTTPException, VideoStoreError):
                raise
            except Exception as e:
                if log_errors:
                    logger.exception(f"Unexpected error in {operation_name}: {e}")
                raise HTTPException(status_code=status_code, detail=error_detail) from e

        return wrapper

    return decorator
