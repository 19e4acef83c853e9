"""
Pytest fixtures for nowshowing tests.
Provides a temporary SQLite database, blob storage, the store objects, and an
HTTP test client wired to them.
"""

import io
import json
import os
import tempfile
import uuid
from pathlib import Path
from typing import AsyncGenerator

import pytest
from databases import Database
from starlette.datastructures import Headers, UploadFile

# Set up test paths BEFORE importing config
_test_temp_dir = tempfile.mkdtemp()
os.environ["NOWSHOWING_TEST_MODE"] = "1"
os.environ["NOWSHOWING_STORAGE_PATH"] = _test_temp_dir
os.environ["NOWSHOWING_AUDIT_LOG_ENABLED"] = "false"

from api.auth import AdminCredentials  # noqa: E402
from api.catalog import VideoCatalog  # noqa: E402
from api.database import create_tables  # noqa: E402
from api.file_store import VideoFileStore  # noqa: E402
from api.library import VideoLibrary  # noqa: E402

# Small limits keep the size tests fast
TEST_MAX_UPLOAD_SIZE = 64 * 1024
TEST_CHUNK_SIZE = 4 * 1024

TEST_ADMIN_USERNAME = "admin"
TEST_ADMIN_PASSWORD = "test-password"


def make_upload(data: bytes, filename: str = "clip.mp4", content_type: str = "video/mp4") -> UploadFile:
    """Build an in-memory UploadFile as FastAPI would hand it to a route."""
    return UploadFile(
        file=io.BytesIO(data),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


@pytest.fixture(scope="function")
def test_db_url(tmp_path: Path) -> str:
    """SQLite database file with all tables created."""
    db_url = f"sqlite:///{tmp_path / 'test.db'}"
    create_tables(db_url)
    return db_url


@pytest.fixture(scope="function")
def test_storage(tmp_path: Path) -> dict:
    """Create test storage directories."""
    uploads_dir = tmp_path / "uploads"
    logs_dir = tmp_path / "logs"

    uploads_dir.mkdir(parents=True, exist_ok=True)
    logs_dir.mkdir(parents=True, exist_ok=True)

    return {
        "uploads": uploads_dir,
        "logs": logs_dir,
    }


@pytest.fixture(scope="function")
async def test_database(test_db_url: str) -> AsyncGenerator[Database, None]:
    """Connected database handle for each test."""
    database = Database(test_db_url)
    await database.connect()

    yield database

    await database.disconnect()


@pytest.fixture(scope="function")
def catalog(test_database: Database) -> VideoCatalog:
    return VideoCatalog(test_database)


@pytest.fixture(scope="function")
def file_store(test_storage: dict) -> VideoFileStore:
    return VideoFileStore(test_storage["uploads"], max_size=TEST_MAX_UPLOAD_SIZE, chunk_size=TEST_CHUNK_SIZE)


@pytest.fixture(scope="function")
def library(catalog: VideoCatalog, file_store: VideoFileStore) -> VideoLibrary:
    return VideoLibrary(catalog, file_store)


@pytest.fixture(scope="function")
def admin_auth() -> tuple:
    """(username, password) accepted by the test client's admin endpoints."""
    return (TEST_ADMIN_USERNAME, TEST_ADMIN_PASSWORD)


@pytest.fixture(scope="function")
def client(test_db_url: str, test_storage: dict):
    """
    Test client for the application.

    The app gets its own Database handle on the test database file and
    manages the connection through its lifespan.
    """
    from fastapi.testclient import TestClient

    from api.app import create_app

    app = create_app(
        catalog=VideoCatalog(Database(test_db_url)),
        file_store=VideoFileStore(
            test_storage["uploads"], max_size=TEST_MAX_UPLOAD_SIZE, chunk_size=TEST_CHUNK_SIZE
        ),
        admin_credentials=AdminCredentials(username=TEST_ADMIN_USERNAME, password=TEST_ADMIN_PASSWORD),
    )

    with TestClient(app, raise_server_exceptions=True) as test_client:
        yield test_client


@pytest.fixture(scope="function")
def audit_log(test_storage: dict, monkeypatch):
    """
    Route audit entries to a temporary file for the duration of a test.

    Returns a callable that reads back the entries written so far.
    """
    from api import audit

    log_path = test_storage["logs"] / "audit.log"
    logger = audit.AuditLogger(
        log_path=log_path,
        enabled=True,
        logger_name=f"nowshowing.audit.test.{uuid.uuid4().hex}",
    )
    monkeypatch.setattr(audit, "audit_logger", logger)

    def read_entries() -> list:
        if not log_path.exists():
            return []
        return [json.loads(line) for line in log_path.read_text().splitlines() if line.strip()]

    yield read_entries

    for handler in list(logger.logger.handlers):
        handler.close()
        logger.logger.removeHandler(handler)


@pytest.fixture(scope="function")
def upload_factory():
    """Factory for in-memory uploads: upload_factory(data, filename=..., content_type=...)."""
    return make_upload
