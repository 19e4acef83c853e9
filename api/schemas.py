from datetime import datetime
from typing import Dict, List

from pydantic import BaseModel, Field, field_validator

from api.catalog import VideoRecord
from api.common import ensure_utc

# Listing limit bounds for GET /api/videos
MAX_LIST_LIMIT = 1000


class VideoResponse(BaseModel):
    id: int
    stored_name: str
    original_name: str
    uploaded_at: datetime
    size_bytes: int = Field(..., ge=0)
    is_current: bool
    url: str

    @field_validator("uploaded_at", mode="after")
    @classmethod
    def normalize_uploaded_at(cls, v):
        return ensure_utc(v)

    @classmethod
    def from_record(cls, record: VideoRecord) -> "VideoResponse":
        return cls(
            id=record.id,
            stored_name=record.stored_name,
            original_name=record.original_name,
            uploaded_at=record.uploaded_at,
            size_bytes=record.size_bytes,
            is_current=record.is_current,
            url=record.url,
        )


class VideoListResponse(BaseModel):
    videos: List[VideoResponse]
    count: int


class UploadResponse(BaseModel):
    """Returned by POST /upload. The new video is always the current one."""

    success: bool = True
    message: str
    video: VideoResponse


class ActionResponse(BaseModel):
    success: bool = True
    message: str


class HealthResponse(BaseModel):
    status: str
    checks: Dict[str, bool]
