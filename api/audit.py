"""
Audit logging for administrative actions.

Every admin mutation (upload, set-current, delete) is recorded as one JSON
line in a rotating log file, including failed attempts. Falls back to the
console when the file cannot be opened.
"""

import json
import logging
import os
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import Enum
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

from fastapi import Request

from api.common import get_client_ip, get_request_id
from api.errors import VideoStoreError, truncate_string
from config import (
    AUDIT_LOG_BACKUP_COUNT,
    AUDIT_LOG_ENABLED,
    AUDIT_LOG_LEVEL,
    AUDIT_LOG_MAX_BYTES,
    AUDIT_LOG_PATH,
    ERROR_DETAIL_MAX_LENGTH,
    ERROR_SUMMARY_MAX_LENGTH,
)

AUDIT_LOGGER_NAME = "nowshowing.audit"

# Ensure log directory exists (skip in test mode)
if not os.environ.get("NOWSHOWING_TEST_MODE") and AUDIT_LOG_ENABLED:
    try:
        AUDIT_LOG_PATH.parent.mkdir(parents=True, exist_ok=True)
    except PermissionError:
        pass  # Will fall back to console logging


class AuditAction(str, Enum):
    """Audited admin actions."""

    VIDEO_UPLOAD = "video_upload"
    VIDEO_SET_CURRENT = "video_set_current"
    VIDEO_DELETE = "video_delete"


class AuditLogger:
    """Writes audit entries as raw JSON lines."""

    def __init__(
        self,
        log_path: Path = AUDIT_LOG_PATH,
        enabled: bool = AUDIT_LOG_ENABLED,
        logger_name: str = AUDIT_LOGGER_NAME,
    ):
        self.log_path = Path(log_path)
        self.enabled = enabled
        self.logger = logging.getLogger(logger_name)
        self.logger.setLevel(getattr(logging, AUDIT_LOG_LEVEL, logging.INFO))
        self.logger.propagate = False

        if not self.logger.handlers:
            self._setup_handlers()

    def _setup_handlers(self):
        formatter = logging.Formatter("%(message)s")

        if not self.enabled:
            self.logger.addHandler(logging.NullHandler())
            return

        try:
            file_handler = RotatingFileHandler(
                self.log_path,
                maxBytes=AUDIT_LOG_MAX_BYTES,
                backupCount=AUDIT_LOG_BACKUP_COUNT,
                encoding="utf-8",
            )
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)
        except OSError:
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(formatter)
            self.logger.addHandler(console_handler)

    def build_entry(
        self,
        action: AuditAction,
        client_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
        request_id: Optional[str] = None,
        video_id: Optional[int] = None,
        video_name: Optional[str] = None,
        details: Optional[dict] = None,
        success: bool = True,
        error: Optional[str] = None,
    ) -> dict:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "action": action.value,
            "success": success,
        }
        if request_id:
            entry["request_id"] = request_id
        if client_ip:
            entry["client_ip"] = client_ip
        if user_agent:
            entry["user_agent"] = truncate_string(user_agent, ERROR_DETAIL_MAX_LENGTH)
        if video_id is not None:
            entry["video_id"] = video_id
        if video_name:
            entry["video_name"] = truncate_string(video_name, ERROR_DETAIL_MAX_LENGTH)
        if details:
            entry["details"] = details
        if error:
            entry["error"] = truncate_string(error, ERROR_SUMMARY_MAX_LENGTH)
        return entry

    def log(self, action: AuditAction, **fields: Any) -> None:
        if not self.enabled:
            return
        entry = self.build_entry(action, **fields)
        try:
            self.logger.info(json.dumps(entry, default=str))
        except (TypeError, ValueError, OSError):
            # Audit output must never fail the request it describes
            logging.getLogger(__name__).warning(f"Failed to write audit entry for {action.value}")


# Singleton instance for use across the application
audit_logger = AuditLogger()


def log_audit(
    action: AuditAction,
    request: Optional[Request] = None,
    video_id: Optional[int] = None,
    video_name: Optional[str] = None,
    details: Optional[dict] = None,
    success: bool = True,
    error: Optional[str] = None,
) -> None:
    """
    Record an admin action, taking client IP, user agent and request ID from the request.

    Example:
        log_audit(AuditAction.VIDEO_DELETE, request, video_id=video_id, video_name=record.original_name)
    """
    fields = {}
    if request is not None:
        fields = {
            "client_ip": get_client_ip(request),
            "user_agent": request.headers.get("user-agent"),
            "request_id": get_request_id(request),
        }
    audit_logger.log(
        action,
        video_id=video_id,
        video_name=video_name,
        details=details,
        success=success,
        error=error,
        **fields,
    )


@contextmanager
def audit_action(action: AuditAction, request: Optional[Request] = None, **fields: Any):
    """
    Audit the wrapped block: one success entry, or one failure entry when a
    store error escapes. The yielded dict can be updated with fields learned
    inside the block (e.g. the new video id).

    Example:
        with audit_action(AuditAction.VIDEO_SET_CURRENT, request, video_id=video_id):
            await library.set_current(video_id)
    """
    try:
        yield fields
    except VideoStoreError as e:
        log_audit(action, request, success=False, error=e.message, **fields)
        raise
    log_audit(action, request, **fields)
