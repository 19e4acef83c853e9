"""
Common utilities shared by the HTTP layer and the stores.

Timezone normalisation, request tracing and security headers middleware,
and the database/storage health check.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from config import STORAGE_CHECK_TIMEOUT

if TYPE_CHECKING:
    from api.catalog import VideoCatalog
    from api.file_store import VideoFileStore

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 128


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure datetime is timezone-aware UTC.

    SQLite doesn't store timezone info, so datetimes retrieved from the database
    may be timezone-naive even though they were stored as UTC.

    Examples:
        >>> ensure_utc(None)
        None
        >>> ensure_utc(datetime(2024, 1, 1, 12, 0, 0))  # naive
        datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        # Assume naive datetimes from SQLite are UTC
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def get_client_ip(request: Request) -> str:
    """Direct client address of the request, or "unknown" when unavailable."""
    return request.client.host if request.client else "unknown"


def get_request_id(request: Request) -> Optional[str]:
    """Request ID assigned by RequestIDMiddleware, if any."""
    return getattr(request.state, "request_id", None)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Attach a request ID to every request for log correlation.

    An incoming X-Request-ID header is preserved (truncated to a sane length);
    otherwise a UUID4 is generated. The ID is echoed back in the response.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER, "").strip()[:MAX_REQUEST_ID_LENGTH]
        if not request_id:
            request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        # Prevent MIME-type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Control referrer information
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # Permissions policy (disable unnecessary browser features)
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        return response


async def check_health(catalog: "VideoCatalog", file_store: "VideoFileStore") -> dict:
    """
    Perform health checks for database and storage.

    Returns a dict with:
        - checks: dict of individual check results
        - healthy: bool indicating overall health
        - status_code: HTTP status code (200 if healthy, 503 if not)
    """
    checks = {
        "database": False,
        "storage": False,
    }

    try:
        await catalog.database.fetch_one("SELECT 1")
        checks["database"] = True
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")

    # Storage write test runs in a thread with a timeout so a hung mount cannot block the loop
    try:
        loop = asyncio.get_running_loop()
        checks["storage"] = await asyncio.wait_for(
            loop.run_in_executor(None, file_store.check_writable),
            timeout=STORAGE_CHECK_TIMEOUT,
        )
    except asyncio.TimeoutError:
        logger.warning("Storage health check timed out")
    except Exception as e:
        logger.warning(f"Storage health check failed: {e}")

    healthy = all(checks.values())
    return {
        "checks": checks,
        "healthy": healthy,
        "status_code": 200 if healthy else 503,
    }
