"""
HTTP application: landing page, admin panel, blob streaming and admin actions.

Stores are injected through create_app() and reached from routes via
app.state, so every app instance (and every test) gets its own catalog and
blob directory.
"""

import logging
import mimetypes
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, File, HTTPException, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from api.audit import AuditAction, audit_action
from api.auth import AdminCredentials, require_admin
from api.catalog import VideoCatalog
from api.common import RequestIDMiddleware, SecurityHeadersMiddleware, check_health
from api.database import create_database, create_tables
from api.errors import VideoStoreError, format_size
from api.exception_utils import error_response, handle_api_exceptions, http_error_for
from api.file_store import VideoFileStore
from api.library import VideoLibrary
from api.schemas import (
    MAX_LIST_LIMIT,
    ActionResponse,
    HealthResponse,
    UploadResponse,
    VideoListResponse,
    VideoResponse,
)
from config import (
    CORS_ALLOWED_ORIGINS,
    DEFAULT_ADMIN_CREDENTIALS,
    HOST,
    LOG_LEVEL,
    PORT,
    UPLOADS_DIR,
)

logger = logging.getLogger(__name__)

APP_DIR = Path(__file__).parent
TEMPLATES_DIR = APP_DIR / "templates"
STATIC_DIR = APP_DIR / "static"

# Served when the stored extension has no registered video type
DEFAULT_VIDEO_MEDIA_TYPE = "video/mp4"

UPLOAD_SUCCESS_MESSAGE = "Video uploaded successfully! Processing may take a few minutes."
SET_CURRENT_SUCCESS_MESSAGE = "Current video updated successfully"
DELETE_SUCCESS_MESSAGE = "Video deleted successfully"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.filters["filesize"] = format_size

router = APIRouter()


def get_library(request: Request) -> VideoLibrary:
    return request.app.state.library


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown."""
    catalog: VideoCatalog = app.state.catalog
    file_store: VideoFileStore = app.state.file_store

    if DEFAULT_ADMIN_CREDENTIALS and app.state.admin_credentials == AdminCredentials():
        logger.warning(
            "Admin endpoints are using the default credentials. "
            "Set NOWSHOWING_ADMIN_USERNAME and NOWSHOWING_ADMIN_PASSWORD before exposing this server."
        )

    try:
        file_store.ensure_root()
    except OSError as e:
        logger.warning(f"Could not create uploads directory {file_store.root}: {e}")

    create_tables(str(catalog.database.url))
    await catalog.connect()
    yield
    await catalog.disconnect()


async def video_store_error_handler(request: Request, exc: VideoStoreError) -> JSONResponse:
    """Translate store-layer errors into sanitized JSON responses."""
    status_code, detail = http_error_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected ({status_code}): {exc.message}")
    return error_response(status_code, detail)


def create_app(
    catalog: Optional[VideoCatalog] = None,
    file_store: Optional[VideoFileStore] = None,
    admin_credentials: Optional[AdminCredentials] = None,
) -> FastAPI:
    """
    Build the application around the given stores.

    Missing stores are created from configuration (NOWSHOWING_DATABASE_URL
    and the uploads directory under NOWSHOWING_STORAGE_PATH).
    """
    if catalog is None:
        catalog = VideoCatalog(create_database())
    if file_store is None:
        file_store = VideoFileStore(UPLOADS_DIR)

    app = FastAPI(title="nowshowing", description="Current-video showcase with admin uploads", lifespan=lifespan)

    app.state.catalog = catalog
    app.state.file_store = file_store
    app.state.library = VideoLibrary(catalog, file_store)
    app.state.admin_credentials = admin_credentials or AdminCredentials()

    app.add_exception_handler(VideoStoreError, video_store_error_handler)

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # If CORS_ALLOWED_ORIGINS is empty, allow same-origin only (no CORS headers)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ALLOWED_ORIGINS,
        allow_credentials=bool(CORS_ALLOWED_ORIGINS),
        allow_methods=["GET", "HEAD", "OPTIONS", "POST", "DELETE"],
        allow_headers=["Authorization", "Content-Type"],
        expose_headers=["Content-Length", "Content-Range", "Accept-Ranges", "X-Request-ID"],
    )

    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")
    app.include_router(router)
    return app


# ============================================================================
# Pages
# ============================================================================


@router.get("/", response_class=HTMLResponse)
@handle_api_exceptions("index_page", "Error loading videos")
async def index(request: Request, library: VideoLibrary = Depends(get_library)):
    """Landing page: the current video (if any) and every uploaded video."""
    videos = await library.list_videos()
    current_video = next((v for v in videos if v.is_current), None)
    return templates.TemplateResponse(
        request,
        "index.html",
        {"current_video": current_video, "videos": videos},
    )


@router.get("/admin", response_class=HTMLResponse)
@handle_api_exceptions("admin_page", "Error loading videos")
async def admin_page(
    request: Request,
    library: VideoLibrary = Depends(get_library),
    admin: str = Depends(require_admin),
):
    videos = await library.list_videos()
    current_video = next((v for v in videos if v.is_current), None)
    return templates.TemplateResponse(
        request,
        "admin.html",
        {
            "current_video": current_video,
            "videos": videos,
            "admin": admin,
            "max_upload_size": library.file_store.max_size,
        },
    )


# ============================================================================
# Streaming
# ============================================================================


@router.get("/video/{video_id}")
@handle_api_exceptions("video_stream", "Error serving video")
async def stream_video(video_id: int, library: VideoLibrary = Depends(get_library)):
    """
    Serve a video's blob inline.

    Range requests are handled by FileResponse, so players can seek.
    """
    record, path = await library.open_blob(video_id)
    media_type = mimetypes.guess_type(record.stored_name)[0]
    if not media_type or not media_type.startswith("video/"):
        media_type = DEFAULT_VIDEO_MEDIA_TYPE
    return FileResponse(
        path,
        media_type=media_type,
        filename=record.stored_name,
        content_disposition_type="inline",
        headers={"Accept-Ranges": "bytes"},
    )


# ============================================================================
# Admin actions
# ============================================================================


@router.post("/upload", response_model=UploadResponse)
@handle_api_exceptions("video_upload", "Failed to upload video")
async def upload_video(
    request: Request,
    video: Optional[UploadFile] = File(None),
    library: VideoLibrary = Depends(get_library),
    admin: str = Depends(require_admin),
):
    """Upload a video file (form field "video"); it becomes the current video."""
    if video is None or not video.filename:
        raise HTTPException(status_code=400, detail="No video file uploaded")

    try:
        with audit_action(AuditAction.VIDEO_UPLOAD, request, video_name=video.filename) as audit:
            record = await library.upload(video, video.content_type, video.filename)
            audit["video_id"] = record.id
            audit["details"] = {"stored_name": record.stored_name, "size_bytes": record.size_bytes}
    finally:
        await video.close()

    return UploadResponse(message=UPLOAD_SUCCESS_MESSAGE, video=VideoResponse.from_record(record))


@router.post("/set-current-video/{video_id}", response_model=ActionResponse)
@handle_api_exceptions("set_current_video", "Failed to update current video")
async def set_current_video(
    request: Request,
    video_id: int,
    library: VideoLibrary = Depends(get_library),
    admin: str = Depends(require_admin),
):
    with audit_action(AuditAction.VIDEO_SET_CURRENT, request, video_id=video_id):
        await library.set_current(video_id)
    return ActionResponse(message=SET_CURRENT_SUCCESS_MESSAGE)


@router.delete("/delete-video/{video_id}", response_model=ActionResponse)
@handle_api_exceptions("delete_video", "Failed to delete video")
async def delete_video(
    request: Request,
    video_id: int,
    library: VideoLibrary = Depends(get_library),
    admin: str = Depends(require_admin),
):
    """Delete a video's blob and record. A missing blob does not block the delete."""
    with audit_action(AuditAction.VIDEO_DELETE, request, video_id=video_id) as audit:
        record = await library.delete(video_id)
        audit["video_name"] = record.original_name
    return ActionResponse(message=DELETE_SUCCESS_MESSAGE)


@router.get("/api/videos", response_model=VideoListResponse)
@handle_api_exceptions("list_videos", "Failed to list videos")
async def list_videos(
    limit: Optional[int] = Query(default=None, ge=1, le=MAX_LIST_LIMIT),
    library: VideoLibrary = Depends(get_library),
    admin: str = Depends(require_admin),
):
    """All videos, newest first. ``limit`` keeps only the most recent N."""
    videos = await library.list_videos(limit=limit)
    return VideoListResponse(videos=[VideoResponse.from_record(v) for v in videos], count=len(videos))


# ============================================================================
# Health
# ============================================================================


@router.get("/health")
async def health(request: Request):
    """Health check: database reachable and uploads directory writable."""
    result = await check_health(request.app.state.catalog, request.app.state.file_store)
    return JSONResponse(
        status_code=result["status_code"],
        content=HealthResponse(
            status="healthy" if result["healthy"] else "unhealthy",
            checks=result["checks"],
        ).model_dump(),
    )


app = create_app()


def main():
    import uvicorn

    uvicorn.run(app, host=HOST, port=PORT, log_level=LOG_LEVEL)


if __name__ == "__main__":
    main()
