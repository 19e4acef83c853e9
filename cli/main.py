#!/usr/bin/env python3
"""
nowshowing CLI - manage videos on a running server from the command line.
"""

import argparse
import mimetypes
import os
import sys
from pathlib import Path
from typing import List, Optional

import httpx
from rich.progress import (
    BarColumn,
    FileSizeColumn,
    Progress,
    TextColumn,
    TimeRemainingColumn,
    TotalFileSizeColumn,
    TransferSpeedColumn,
)

from api.errors import format_size, truncate_string
from config import (
    ADMIN_PASSWORD,
    ADMIN_USERNAME,
    ERROR_DETAIL_MAX_LENGTH,
    ERROR_SUMMARY_MAX_LENGTH,
    MAX_UPLOAD_SIZE,
    PORT,
    get_int_env,
)

# Default timeout for API requests (30 seconds)
DEFAULT_API_TIMEOUT = get_int_env("NOWSHOWING_API_TIMEOUT", 30, min_val=1)

# Upload timeout in seconds (default 2 hours)
UPLOAD_TIMEOUT = get_int_env("NOWSHOWING_UPLOAD_TIMEOUT", 7200, min_val=1)

SERVER_URL = os.getenv("NOWSHOWING_SERVER_URL", f"http://localhost:{PORT}").rstrip("/")

DEFAULT_UPLOAD_MIME_TYPE = "video/mp4"


class CLIError(Exception):
    """Custom exception for CLI errors."""

    pass


def positive_int(value: str) -> int:
    """Argparse type converter that validates positive integers."""
    i = int(value)
    if i <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {i}")
    return i


class ProgressFileWrapper:
    """Wrapper for file objects that reports upload progress."""

    def __init__(self, file, progress, task_id):
        self.file = file
        self.progress = progress
        self.task_id = task_id

    def read(self, size=-1):
        data = self.file.read(size)
        if data:
            self.progress.update(self.task_id, advance=len(data))
        return data

    def seek(self, *args, **kwargs):
        return self.file.seek(*args, **kwargs)

    def tell(self):
        return self.file.tell()

    def close(self):
        """Does not close the underlying file; it is managed by the caller."""
        pass


def make_client(timeout: float = DEFAULT_API_TIMEOUT) -> httpx.Client:
    """HTTP client for the server, authenticated as the configured admin."""
    return httpx.Client(
        base_url=SERVER_URL,
        auth=httpx.BasicAuth(ADMIN_USERNAME, ADMIN_PASSWORD),
        timeout=httpx.Timeout(timeout),
    )


def safe_json_response(response: httpx.Response, default_error: str = "Request failed") -> dict:
    """
    Parse a JSON response, raising CLIError for error statuses or bad JSON.
    """
    if response.status_code == 401:
        raise CLIError(
            "Authentication failed. Set NOWSHOWING_ADMIN_USERNAME and "
            "NOWSHOWING_ADMIN_PASSWORD to match the server configuration."
        )

    if not response.is_success:
        try:
            detail = response.json().get("detail", response.text)
        except ValueError:
            detail = truncate_string(response.text, ERROR_DETAIL_MAX_LENGTH) if response.text else default_error
        raise CLIError(f"API error ({response.status_code}): {detail}")

    try:
        return response.json()
    except ValueError:
        raise CLIError(f"Invalid JSON response: {truncate_string(response.text, ERROR_SUMMARY_MAX_LENGTH)}")


def validate_file(file_path: Path) -> int:
    """
    Validate that a file can be uploaded and return its size.

    Raises:
        CLIError: If the file doesn't exist, isn't readable, is empty, or is too large
    """
    if not file_path.exists():
        raise CLIError(f"File not found: {file_path}")

    if not file_path.is_file():
        raise CLIError(f"Path is not a file: {file_path}")

    if not os.access(file_path, os.R_OK):
        raise CLIError(f"File is not readable: {file_path}")

    file_size = file_path.stat().st_size
    if file_size == 0:
        raise CLIError(f"File is empty: {file_path}")

    if file_size > MAX_UPLOAD_SIZE:
        raise CLIError(
            f"File too large ({format_size(file_size)}). Maximum upload size is {format_size(MAX_UPLOAD_SIZE)}"
        )

    return file_size


def guess_video_type(file_path: Path) -> str:
    mime_type = mimetypes.guess_type(file_path.name)[0]
    if mime_type and mime_type.startswith("video/"):
        return mime_type
    return DEFAULT_UPLOAD_MIME_TYPE


def cmd_upload(args):
    """Upload a video; it becomes the current video."""
    file_path = Path(args.file)
    file_size = validate_file(file_path)

    print(f"Uploading: {file_path.name} ({format_size(file_size)})")

    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        FileSizeColumn(),
        TextColumn("/"),
        TotalFileSizeColumn(),
        TransferSpeedColumn(),
        TimeRemainingColumn(),
    ) as progress:
        task_id = progress.add_task("Uploading...", total=file_size)

        with open(file_path, "rb") as f:
            wrapped_file = ProgressFileWrapper(f, progress, task_id)
            files = {"video": (file_path.name, wrapped_file, guess_video_type(file_path))}
            with make_client(timeout=UPLOAD_TIMEOUT) as client:
                response = client.post("/upload", files=files)

    result = safe_json_response(response)
    video = result["video"]
    print(result.get("message", "Upload complete."))
    print(f"  ID: {video['id']}")
    print(f"  Stored as: {video['stored_name']}")
    print(f"  URL: {SERVER_URL}{video['url']}")


def cmd_list(args):
    """List videos, newest first."""
    params = {}
    if args.limit:
        params["limit"] = args.limit

    with make_client() as client:
        response = client.get("/api/videos", params=params)
    videos = safe_json_response(response).get("videos", [])

    if not videos:
        print("No videos found.")
        return

    print(f"{'ID':<5} {'Current':<8} {'Uploaded':<20} {'Size':<10} {'Stored name':<30} {'Name'}")
    print("-" * 100)
    for v in videos:
        current = "*" if v["is_current"] else ""
        uploaded = v["uploaded_at"][:19].replace("T", " ")
        name = truncate_string(v["original_name"], 40)
        print(f"{v['id']:<5} {current:<8} {uploaded:<20} {format_size(v['size_bytes']):<10} {v['stored_name']:<30} {name}")


def cmd_set_current(args):
    """Make an existing video the current one."""
    with make_client() as client:
        response = client.post(f"/set-current-video/{args.video_id}")
    safe_json_response(response)
    print(f"Video {args.video_id} is now the current video.")


def cmd_delete(args):
    """Delete a video."""
    with make_client() as client:
        response = client.delete(f"/delete-video/{args.video_id}")
    safe_json_response(response)
    print(f"Video {args.video_id} deleted.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="nowshowing", description="nowshowing CLI - manage the video showcase")
    subparsers = parser.add_subparsers(dest="command", required=True)

    upload_parser = subparsers.add_parser("upload", help="Upload a video file and make it current")
    upload_parser.add_argument("file", help="Video file to upload")
    upload_parser.set_defaults(func=cmd_upload)

    list_parser = subparsers.add_parser("list", help="List videos, newest first")
    list_parser.add_argument("-n", "--limit", type=positive_int, help="Only show the N most recent videos")
    list_parser.set_defaults(func=cmd_list)

    current_parser = subparsers.add_parser("set-current", help="Make a video the current video")
    current_parser.add_argument("video_id", type=positive_int, help="Video ID")
    current_parser.set_defaults(func=cmd_set_current)

    del_parser = subparsers.add_parser("delete", help="Delete a video")
    del_parser.add_argument("video_id", type=positive_int, help="Video ID")
    del_parser.set_defaults(func=cmd_delete)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        args.func(args)
    except httpx.ConnectError:
        print(f"Error: Could not connect to server at {SERVER_URL}", file=sys.stderr)
        print("Make sure the server is running, or set NOWSHOWING_SERVER_URL.", file=sys.stderr)
        return 1
    except httpx.TimeoutException:
        print(f"Error: Request to {SERVER_URL} timed out", file=sys.stderr)
        return 1
    except CLIError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
