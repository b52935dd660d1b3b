import json
import logging
import os
import tempfile
from typing import Any, Callable, Dict, List, Optional, Sequence

import requests
from requests_toolbelt.multipart.encoder import MultipartEncoder, MultipartEncoderMonitor

from hostdeck.models.entries import FileEntry, FileMetadata, LogEntry, ServerSettings
from hostdeck.models.paths import normalize_path

logger = logging.getLogger(__name__)
logging.basicConfig(
    level=logging.ERROR,
    format="%(asctime)s | %(filename)s:%(lineno)s \t [%(levelname)s] %(message)s",
)

CSRF_HEADER = "X-CSRF-Token"
CHUNK_SIZE = 1024 * 1024  # 1 MiB


class FileHostError(Exception):
    """Base exception for file-host API operations."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


class FileHostAuthError(FileHostError):
    """Authentication/authorization related errors (401/403)."""


class FileHostNotFoundError(FileHostError):
    """Resource not found (404)."""


class FileHostConflictError(FileHostError):
    """Target already exists (409)."""


class FileHostValidationError(FileHostError):
    """The server rejected the request (other 4xx)."""


class FileHostConnectionError(FileHostError):
    """Connectivity problems or an unexpected server response."""


def _env_timeout() -> float:
    raw = os.getenv("HOSTDECK_TIMEOUT")
    try:
        return float(raw) if raw else 30.0
    except ValueError:
        return 30.0


def _env_verify() -> bool:
    return os.getenv("HOSTDECK_VERIFY_TLS", "1").strip().lower() not in {"0", "false", "no"}


def _progress_callback(on_progress: Optional[Callable[[int], None]]):
    """Turn an encoder monitor's byte count into whole percents, each reported once."""
    last = -1

    def report(monitor: MultipartEncoderMonitor) -> None:
        nonlocal last
        if on_progress is None:
            return
        pct = round(monitor.bytes_read * 100 / (monitor.len or 1))
        if pct != last:
            last = pct
            on_progress(pct)

    return report


class FileHostClient:
    """
    Client for the file-host management API.
    Base must point at the API root, e.g.:
        https://files.example.com/api
    """

    def __init__(
        self,
        base_url: str,
        *,
        access_client_id: str = "",
        access_client_secret: str = "",
        verify: Optional[bool] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
        logger=None,
    ):
        base_url = (base_url or "").strip().rstrip("/")
        if not base_url.endswith("/api"):
            base_url += "/api"
        self.base = base_url + "/"
        self.timeout = timeout if timeout is not None else _env_timeout()
        self.logger = logger or logging.getLogger(__name__)
        self.session = session or requests.Session()
        self.session.verify = _env_verify() if verify is None else verify
        if access_client_id:
            self.session.headers["CF-Access-Client-Id"] = access_client_id
        if access_client_secret:
            self.session.headers["CF-Access-Client-Secret"] = access_client_secret
        self._csrf_token: Optional[str] = None

    # -------- helpers --------
    def _url(self, endpoint: str) -> str:
        return self.base + endpoint.lstrip("/")

    def _error_message(self, resp: requests.Response) -> str:
        try:
            data = resp.json()
        except ValueError:
            try:
                data = json.loads(resp.text or "")
            except ValueError:
                data = None
        if isinstance(data, dict) and data.get("error"):
            return str(data["error"])
        return (resp.text or "").strip() or resp.reason or f"HTTP {resp.status_code}"

    def _raise_mapped(self, action: str, resp: requests.Response) -> None:
        """Map an HTTP error response to our typed errors."""
        status = resp.status_code
        msg = self._error_message(resp)
        self.logger.error(f"{action} failed ({status}): {msg}")
        if status in (401, 403):
            raise FileHostAuthError(msg, status)
        if status == 404:
            raise FileHostNotFoundError(msg, status)
        if status == 409:
            raise FileHostConflictError(msg, status)
        if 400 <= status < 500:
            raise FileHostValidationError(msg, status)
        raise FileHostConnectionError(f"Server error during {action}: {msg}", status)

    def csrf_token(self) -> str:
        """Fetch the CSRF token once and reuse it for every write."""
        if self._csrf_token is None:
            resp = self._send("GET", "csrf-token", action="fetch CSRF token")
            self._csrf_token = str(self._json(resp, "fetch CSRF token").get("token") or "")
        return self._csrf_token

    def reset_csrf_token(self) -> None:
        self._csrf_token = None

    def _send(self, method: str, endpoint: str, *, action: str, **kwargs) -> requests.Response:
        headers = dict(kwargs.pop("headers", None) or {})
        if method != "GET":
            headers[CSRF_HEADER] = self.csrf_token()
        try:
            resp = self.session.request(
                method,
                self._url(endpoint),
                headers=headers,
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            self.logger.error(f"Request to {action} failed: {e}")
            raise FileHostConnectionError(f"Could not {action}: {e}") from e
        if resp.status_code >= 400:
            self._raise_mapped(action, resp)
        return resp

    def _json(self, resp: requests.Response, action: str, strict: bool = True) -> Dict[str, Any]:
        try:
            data = resp.json()
        except ValueError as e:
            if not strict:
                # Writes only need the status code
                return {}
            raise FileHostConnectionError(f"Unexpected response while trying to {action}") from e
        return data if isinstance(data, dict) else {}

    def _multipart(
        self,
        endpoint: str,
        action: str,
        fields: Dict[str, str],
        local_path: str,
        on_progress: Optional[Callable[[int], None]],
    ) -> Dict[str, Any]:
        with open(local_path, "rb") as f_in:
            parts: Dict[str, Any] = dict(fields)
            parts["file"] = (os.path.basename(local_path), f_in, "application/octet-stream")
            # The file is read from disk as the body is sent
            monitor = MultipartEncoderMonitor(
                MultipartEncoder(fields=parts), _progress_callback(on_progress)
            )
            resp = self._send(
                "POST",
                endpoint,
                action=action,
                data=monitor,
                headers={"Content-Type": monitor.content_type},
            )
        return self._json(resp, action, strict=False)

    # -------- operations --------
    def list(self, path: str = "/", sort: str = "name", direction: str = "asc") -> List[FileEntry]:
        """List one directory level."""
        resp = self._send(
            "GET",
            "files",
            action="list directory",
            params={"path": normalize_path(path), "sort": sort, "dir": direction},
        )
        data = self._json(resp, "list directory")
        return [FileEntry.from_json(f) for f in (data.get("files") or [])]

    def upload(
        self,
        local_path: str,
        directory: str = "/",
        overwrite: bool = False,
        on_progress: Optional[Callable[[int], None]] = None,
    ) -> Dict[str, Any]:
        """Upload a single local file into ``directory``."""
        return self._multipart(
            "files/upload",
            f"upload {os.path.basename(local_path)}",
            {"directory": normalize_path(directory), "overwrite": "true" if overwrite else "false"},
            local_path,
            on_progress,
        )

    def replace(
        self,
        path: str,
        local_path: str,
        on_progress: Optional[Callable[[int], None]] = None,
    ) -> Dict[str, Any]:
        """Overwrite the contents of an existing remote file."""
        return self._multipart(
            "files/replace",
            f"replace {path}",
            {"path": normalize_path(path)},
            local_path,
            on_progress,
        )

    def rename(self, path: str, new_name: str) -> Dict[str, Any]:
        resp = self._send(
            "POST", "files/rename", action="rename", json={"path": path, "new_name": new_name}
        )
        return self._json(resp, "rename", strict=False)

    def move(self, path: str, destination: str) -> Dict[str, Any]:
        resp = self._send(
            "POST",
            "files/move",
            action="move",
            json={"path": path, "destination": normalize_path(destination)},
        )
        return self._json(resp, "move", strict=False)

    def delete(self, path: str, confirm_filename: str) -> Dict[str, Any]:
        resp = self._send(
            "POST",
            "files/delete",
            action=f"delete {path}",
            json={"path": path, "confirm_filename": confirm_filename},
        )
        return self._json(resp, "delete", strict=False)

    def mkdir(self, path: str, name: str) -> Dict[str, Any]:
        resp = self._send(
            "POST",
            "files/mkdir",
            action="create folder",
            json={"path": normalize_path(path), "name": name},
        )
        return self._json(resp, "create folder", strict=False)

    def metadata(self, path: str) -> FileMetadata:
        resp = self._send("GET", "metadata", action="load metadata", params={"path": path})
        return FileMetadata.from_json(self._json(resp, "load metadata"))

    def zip(self, paths: Sequence[str], destination: str) -> str:
        """Stream a ZIP of ``paths`` into the local file ``destination``."""
        resp = self._send(
            "POST", "files/zip", action="create ZIP", json={"paths": list(paths)}, stream=True
        )
        folder = os.path.dirname(os.path.abspath(destination))
        try:
            os.makedirs(folder, exist_ok=True)
            # Only a complete archive ever appears under the chosen name
            fd, partial_path = tempfile.mkstemp(prefix=".hostdeck-", suffix=".part", dir=folder)
            try:
                with os.fdopen(fd, "wb") as f_out:
                    for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                        if chunk:
                            f_out.write(chunk)
                os.replace(partial_path, destination)
            except BaseException:
                os.unlink(partial_path)
                raise
        except requests.RequestException as e:
            self.logger.error(f"ZIP download interrupted: {e}")
            raise FileHostConnectionError(f"ZIP download interrupted: {e}") from e
        finally:
            resp.close()
        return destination

    def logs(self, limit: int = 50, offset: int = 0) -> List[LogEntry]:
        resp = self._send(
            "GET", "logs", action="load logs", params={"limit": limit, "offset": offset}
        )
        data = self._json(resp, "load logs")
        return [LogEntry.from_json(r) for r in (data.get("logs") or [])]

    def get_settings(self) -> ServerSettings:
        resp = self._send("GET", "settings", action="load settings")
        return ServerSettings.from_json(self._json(resp, "load settings"))

    def update_settings(self, settings: ServerSettings) -> Dict[str, Any]:
        resp = self._send("PUT", "settings", action="save settings", json=settings.to_json())
        return self._json(resp, "save settings", strict=False)
