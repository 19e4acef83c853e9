"""Tests for the nowshowing command-line client."""

import argparse
from unittest import mock

import httpx
import pytest

from cli import main as cli_main
from cli.main import CLIError, guess_video_type, positive_int, safe_json_response, validate_file

VIDEO_JSON = {
    "id": 3,
    "stored_name": "1700000000000-42.mp4",
    "original_name": "holiday.mp4",
    "uploaded_at": "2024-05-01T12:30:00+00:00",
    "size_bytes": 2048,
    "is_current": True,
    "url": "/video/3",
}


@pytest.fixture
def mock_server(monkeypatch):
    """Route CLI requests to a handler instead of the network; records every request."""
    requests = []

    def install(handler):
        def recording_handler(request: httpx.Request) -> httpx.Response:
            request.read()
            requests.append(request)
            return handler(request)

        def fake_make_client(timeout=30):
            return httpx.Client(
                base_url="http://testserver",
                auth=httpx.BasicAuth("admin", "test-password"),
                transport=httpx.MockTransport(recording_handler),
            )

        monkeypatch.setattr(cli_main, "make_client", fake_make_client)
        return requests

    return install


class TestPositiveInt:
    def test_accepts_positive(self):
        assert positive_int("5") == 5

    @pytest.mark.parametrize("value", ["0", "-3"])
    def test_rejects_non_positive(self, value):
        with pytest.raises(argparse.ArgumentTypeError):
            positive_int(value)


class TestValidateFile:
    """Tests for local file checks before upload."""

    def test_returns_size(self, tmp_path):
        path = tmp_path / "clip.mp4"
        path.write_bytes(b"x" * 100)
        assert validate_file(path) == 100

    def test_missing_file(self, tmp_path):
        with pytest.raises(CLIError, match="File not found"):
            validate_file(tmp_path / "nope.mp4")

    def test_directory(self, tmp_path):
        with pytest.raises(CLIError, match="not a file"):
            validate_file(tmp_path)

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.mp4"
        path.touch()
        with pytest.raises(CLIError, match="File is empty"):
            validate_file(path)

    def test_too_large(self, tmp_path):
        path = tmp_path / "big.mp4"
        path.write_bytes(b"x" * 10)
        with mock.patch.object(cli_main, "MAX_UPLOAD_SIZE", 5):
            with pytest.raises(CLIError, match="File too large"):
                validate_file(path)


class TestGuessVideoType:
    def test_known_extension(self, tmp_path):
        assert guess_video_type(tmp_path / "a.mov") == "video/quicktime"

    def test_unknown_extension_defaults_to_mp4(self, tmp_path):
        assert guess_video_type(tmp_path / "a.unknownext") == "video/mp4"


class TestSafeJsonResponse:
    """Tests for response handling."""

    def test_success(self):
        response = httpx.Response(200, json={"success": True})
        assert safe_json_response(response) == {"success": True}

    def test_auth_failure(self):
        with pytest.raises(CLIError, match="Authentication failed"):
            safe_json_response(httpx.Response(401, json={"detail": "Not authenticated"}))

    def test_error_detail_surfaced(self):
        with pytest.raises(CLIError, match=r"API error \(404\): Video not found"):
            safe_json_response(httpx.Response(404, json={"detail": "Video not found"}))

    def test_non_json_error(self):
        with pytest.raises(CLIError, match=r"API error \(502\): Bad Gateway"):
            safe_json_response(httpx.Response(502, text="Bad Gateway"))

    def test_invalid_json_on_success(self):
        with pytest.raises(CLIError, match="Invalid JSON response"):
            safe_json_response(httpx.Response(200, text="<html>"))


class TestCommands:
    """Tests for main() and each subcommand."""

    def test_list(self, mock_server, capsys):
        requests = mock_server(lambda request: httpx.Response(200, json={"videos": [VIDEO_JSON], "count": 1}))

        assert cli_main.main(["list", "--limit", "5"]) == 0

        out = capsys.readouterr().out
        assert "holiday.mp4" in out
        assert "1700000000000-42.mp4" in out
        assert "2024-05-01 12:30:00" in out
        assert requests[0].url.path == "/api/videos"
        assert requests[0].url.params["limit"] == "5"

    def test_list_empty(self, mock_server, capsys):
        mock_server(lambda request: httpx.Response(200, json={"videos": [], "count": 0}))

        assert cli_main.main(["list"]) == 0
        assert "No videos found." in capsys.readouterr().out

    def test_set_current(self, mock_server, capsys):
        requests = mock_server(
            lambda request: httpx.Response(200, json={"success": True, "message": "Current video updated successfully"})
        )

        assert cli_main.main(["set-current", "3"]) == 0

        assert requests[0].method == "POST"
        assert requests[0].url.path == "/set-current-video/3"
        assert requests[0].headers["authorization"].startswith("Basic ")
        assert "Video 3 is now the current video." in capsys.readouterr().out

    def test_delete(self, mock_server, capsys):
        requests = mock_server(lambda request: httpx.Response(200, json={"success": True, "message": "Video deleted successfully"}))

        assert cli_main.main(["delete", "3"]) == 0

        assert requests[0].method == "DELETE"
        assert requests[0].url.path == "/delete-video/3"
        assert "Video 3 deleted." in capsys.readouterr().out

    def test_delete_unknown_video(self, mock_server, capsys):
        mock_server(lambda request: httpx.Response(404, json={"detail": "Video not found"}))

        assert cli_main.main(["delete", "99"]) == 1
        assert "Video not found" in capsys.readouterr().err

    def test_upload(self, mock_server, tmp_path, capsys):
        path = tmp_path / "holiday.mp4"
        path.write_bytes(b"\x00\x01" * 1024)
        requests = mock_server(
            lambda request: httpx.Response(
                200,
                json={"success": True, "message": "Video uploaded successfully!", "video": VIDEO_JSON},
            )
        )

        assert cli_main.main(["upload", str(path)]) == 0

        request = requests[0]
        assert request.url.path == "/upload"
        assert request.headers["content-type"].startswith("multipart/form-data")
        body = request.content
        assert b'name="video"' in body
        assert b'filename="holiday.mp4"' in body
        assert b"Content-Type: video/mp4" in body

        out = capsys.readouterr().out
        assert "ID: 3" in out
        assert "Stored as: 1700000000000-42.mp4" in out
        assert "/video/3" in out

    def test_upload_missing_file(self, mock_server, tmp_path, capsys):
        requests = mock_server(lambda request: httpx.Response(500))

        assert cli_main.main(["upload", str(tmp_path / "missing.mp4")]) == 1
        assert requests == []
        assert "File not found" in capsys.readouterr().err

    def test_auth_failure(self, mock_server, capsys):
        mock_server(lambda request: httpx.Response(401, json={"detail": "Not authenticated"}))

        assert cli_main.main(["list"]) == 1
        assert "Authentication failed" in capsys.readouterr().err

    def test_connection_error(self, mock_server, capsys):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        mock_server(refuse)

        assert cli_main.main(["list"]) == 1
        assert "Could not connect" in capsys.readouterr().err

    def test_timeout(self, mock_server, capsys):
        def slow(request):
            raise httpx.ReadTimeout("timed out", request=request)

        mock_server(slow)

        assert cli_main.main(["set-current", "1"]) == 1
        assert "timed out" in capsys.readouterr().err

    def test_requires_command(self):
        with pytest.raises(SystemExit):
            cli_main.main([])

    def test_rejects_non_positive_id(self):
        with pytest.raises(SystemExit):
            cli_main.main(["delete", "0"])

