import json

import pytest
import requests
from requests_toolbelt.multipart.encoder import MultipartEncoderMonitor

from hostdeck.models.entries import ServerSettings
from hostdeck.services.api.client import (
    CSRF_HEADER,
    FileHostAuthError,
    FileHostClient,
    FileHostConflictError,
    FileHostConnectionError,
    FileHostError,
    FileHostNotFoundError,
    FileHostValidationError,
)


class DummyResponse:
    def __init__(self, status_code=200, payload=None, content=b"", text=None):
        self.status_code = status_code
        self._payload = payload
        self._content = content
        self.text = text if text is not None else (json.dumps(payload) if payload is not None else "")
        self.reason = "Reason"
        self.closed = False

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self._content), chunk_size):
            yield self._content[i : i + chunk_size]

    def close(self):
        self.closed = True


class DummySession:
    """Answers by (method, endpoint); records every request."""

    def __init__(self, routes=None):
        self.headers = {}
        self.verify = True
        self.routes = routes or {}
        self.requests = []
        # Request bodies as handed over, before draining
        self.bodies = []

    def request(self, method, url, headers=None, timeout=None, **kwargs):
        endpoint = url.split("/api/", 1)[1]
        body = kwargs.get("data")
        self.bodies.append(body)
        if body is not None and hasattr(body, "read"):
            # Drain the streamed body the way the transport would
            chunks = []
            while True:
                chunk = body.read(7)
                if not chunk:
                    break
                chunks.append(chunk)
            kwargs["data"] = b"".join(chunks)
        self.requests.append((method, endpoint, dict(headers or {}), kwargs))
        route = self.routes.get((method, endpoint))
        if isinstance(route, Exception):
            raise route
        if route is None:
            return DummyResponse(200, {"token": "tok"} if endpoint == "csrf-token" else {})
        return route


def make_client(routes=None, **kwargs):
    session = DummySession(routes)
    return FileHostClient("https://files.example.com", session=session, **kwargs), session


def test_base_url_and_access_headers():
    client, session = make_client(access_client_id="id", access_client_secret="secret", verify=False)
    assert client.base == "https://files.example.com/api/"
    assert session.headers["CF-Access-Client-Id"] == "id"
    assert session.headers["CF-Access-Client-Secret"] == "secret"
    assert session.verify is False

    other = FileHostClient("https://x.test/api/", session=DummySession())
    assert other.base == "https://x.test/api/"


def test_list_parses_entries_and_sends_params():
    listing = {
        "files": [
            {"name": "docs", "path": "/docs", "is_dir": True, "size": 0, "modified": "2025-01-01T00:00:00Z"},
            {"name": "a.txt", "path": "/a.txt", "is_dir": False, "size": 5, "modified": "2025-01-01T00:00:00Z"},
        ]
    }
    client, session = make_client({("GET", "files"): DummyResponse(200, listing)})

    entries = client.list("docs", sort="size", direction="desc")

    assert [e.path for e in entries] == ["/docs", "/a.txt"]
    method, endpoint, headers, kwargs = session.requests[0]
    assert (method, endpoint) == ("GET", "files")
    assert kwargs["params"] == {"path": "/docs", "sort": "size", "dir": "desc"}
    # Reads never fetch or send a CSRF token
    assert CSRF_HEADER not in headers
    assert len(session.requests) == 1


def test_csrf_token_fetched_once_for_writes():
    client, session = make_client({("GET", "csrf-token"): DummyResponse(200, {"token": "abc"})})

    client.rename("/a.txt", "b.txt")
    client.mkdir("/", "new")

    endpoints = [r[1] for r in session.requests]
    assert endpoints == ["csrf-token", "files/rename", "files/mkdir"]
    assert session.requests[1][2][CSRF_HEADER] == "abc"
    assert session.requests[1][3]["json"] == {"path": "/a.txt", "new_name": "b.txt"}
    assert session.requests[2][3]["json"] == {"path": "/", "name": "new"}

    client.reset_csrf_token()
    client.delete("/a.txt", "a.txt")
    assert [r[1] for r in session.requests][-2:] == ["csrf-token", "files/delete"]
    assert session.requests[-1][3]["json"] == {"path": "/a.txt", "confirm_filename": "a.txt"}


def test_move_and_settings_payloads():
    client, session = make_client(
        {("GET", "settings"): DummyResponse(200, {"public_hostname": "cdn.example.com", "blocked_extensions": ["exe"]})}
    )
    client.move("/a.txt", "docs/")
    assert session.requests[-1][3]["json"] == {"path": "/a.txt", "destination": "/docs"}

    settings = client.get_settings()
    assert settings.public_hostname == "cdn.example.com"
    client.update_settings(ServerSettings(public_hostname="h", blocked_extensions=["bat"]))
    method, endpoint, _, kwargs = session.requests[-1]
    assert (method, endpoint) == ("PUT", "settings")
    assert kwargs["json"]["blocked_extensions"] == ["bat"]


@pytest.mark.parametrize(
    "status,exc_type",
    [
        (401, FileHostAuthError),
        (403, FileHostAuthError),
        (404, FileHostNotFoundError),
        (409, FileHostConflictError),
        (400, FileHostValidationError),
        (413, FileHostValidationError),
        (500, FileHostConnectionError),
    ],
)
def test_error_mapping(status, exc_type):
    client, _ = make_client({("GET", "metadata"): DummyResponse(status, {"error": "server says no"})})
    with pytest.raises(exc_type) as info:
        client.metadata("/a.txt")
    assert info.value.status == status
    assert "server says no" in str(info.value)


def test_error_without_json_body_uses_text():
    client, _ = make_client({("GET", "files"): DummyResponse(404, None, text="Not Found")})
    with pytest.raises(FileHostNotFoundError, match="Not Found"):
        client.list("/")


def test_transport_failure_is_chained():
    cause = requests.ConnectionError("refused")
    client, _ = make_client({("GET", "files"): cause})
    with pytest.raises(FileHostConnectionError) as info:
        client.list("/")
    assert info.value.__cause__ is cause
    assert isinstance(info.value, FileHostError)


def test_upload_reports_progress_and_sends_multipart(tmp_path):
    local = tmp_path / "photo.jpg"
    local.write_bytes(b"x" * 100)
    client, session = make_client()
    seen = []

    client.upload(str(local), "docs", overwrite=True, on_progress=seen.append)

    method, endpoint, headers, kwargs = session.requests[-1]
    assert (method, endpoint) == ("POST", "files/upload")
    assert headers["Content-Type"].startswith("multipart/form-data; boundary=")
    assert headers[CSRF_HEADER] == "tok"
    body = kwargs["data"]
    assert b'name="directory"' in body and b"/docs" in body
    assert b'name="overwrite"' in body and b"true" in body
    assert b'filename="photo.jpg"' in body
    assert seen[-1] == 100
    assert seen == sorted(seen)
    assert all(0 <= p <= 100 for p in seen)


def test_replace_sends_path(tmp_path):
    local = tmp_path / "new.txt"
    local.write_text("hello")
    client, session = make_client()
    client.replace("/docs/old.txt", str(local))
    _, endpoint, _, kwargs = session.requests[-1]
    assert endpoint == "files/replace"
    assert b"/docs/old.txt" in kwargs["data"]


def test_zip_streams_to_file(tmp_path):
    content = b"PK" + b"\0" * 50
    resp = DummyResponse(200, None, content=content)
    client, session = make_client({("POST", "files/zip"): resp})
    out = tmp_path / "nested" / "download.zip"

    assert client.zip(["/a", "/b"], str(out)) == str(out)

    assert out.read_bytes() == content
    assert resp.closed
    assert session.requests[-1][3]["json"] == {"paths": ["/a", "/b"]}
    assert session.requests[-1][3]["stream"] is True


def test_logs_parse_transitions():
    payload = {"logs": [{"id": 7, "action": "rename", "file_path": "/a -> /b", "source_ip": "1.2.3.4"}]}
    client, session = make_client({("GET", "logs"): DummyResponse(200, payload)})
    logs = client.logs(limit=10, offset=20)
    assert session.requests[0][3]["params"] == {"limit": 10, "offset": 20}
    assert logs[0].transition() == ("/a", "/b")
    assert logs[0].source_ip == "1.2.3.4"


def test_timeout_from_environment(monkeypatch):
    monkeypatch.setenv("HOSTDECK_TIMEOUT", "5")
    monkeypatch.setenv("HOSTDECK_VERIFY_TLS", "false")
    client, session = make_client()
    assert client.timeout == 5.0
    assert session.verify is False


def test_upload_streams_the_file_instead_of_buffering_it(tmp_path):
    local = tmp_path / "big.bin"
    local.write_bytes(b"\1" * (256 * 1024))
    client, session = make_client()
    seen = []

    client.upload(str(local), "/", on_progress=seen.append)

    body = session.bodies[-1]
    assert isinstance(body, MultipartEncoderMonitor)
    assert body.bytes_read == body.len
    # Drained 7 bytes at a time, so progress moves through many steps
    assert seen[0] < 5
    assert seen[-1] == 100
    assert len(seen) > 50
    assert len(session.requests[-1][3]["data"]) == body.len


class BrokenStream(DummyResponse):
    def iter_content(self, chunk_size=1):
        yield b"PK\3\4partial"
        raise requests.ConnectionError("reset by peer")


def test_interrupted_zip_leaves_no_file_behind(tmp_path):
    resp = BrokenStream(200, None)
    client, _ = make_client({("POST", "files/zip"): resp})
    out = tmp_path / "download.zip"

    with pytest.raises(FileHostConnectionError) as info:
        client.zip(["/a"], str(out))

    assert "interrupted" in str(info.value)
    assert list(tmp_path.iterdir()) == []
    assert resp.closed


def test_failed_zip_keeps_an_existing_file(tmp_path):
    out = tmp_path / "download.zip"
    out.write_bytes(b"old archive")
    client, _ = make_client({("POST", "files/zip"): BrokenStream(200, None)})

    with pytest.raises(FileHostConnectionError):
        client.zip(["/a"], str(out))

    assert out.read_bytes() == b"old archive"
    assert [p.name for p in tmp_path.iterdir()] == ["download.zip"]
