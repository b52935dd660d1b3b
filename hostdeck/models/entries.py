from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from hostdeck.models.errors import PreconditionError
from hostdeck.models.paths import basename, normalize_path, parent_path

logger = logging.getLogger(__name__)

# Separator the server uses for move/rename rows in the activity log
TRANSITION_SEPARATOR = " -> "

_FRACTION = re.compile(r"\.(\d+)")
_EXTENSION = re.compile(r"^[a-z0-9]{1,10}$")


def parse_timestamp(val: Any) -> Optional[datetime]:
    """Parse RFC 3339 strings or epoch seconds/milliseconds into an aware datetime."""
    if val is None or val == "":
        return None
    if isinstance(val, datetime):
        return val if val.tzinfo else val.replace(tzinfo=timezone.utc)
    if isinstance(val, (int, float)):
        ts = float(val)
        # Heuristic: values this large are milliseconds
        if ts > 10_000_000_000:
            ts = ts / 1000.0
        return datetime.fromtimestamp(ts, tz=timezone.utc)
    s = str(val).strip()
    if s.isdigit():
        return parse_timestamp(int(s))
    iso = s.replace("Z", "+00:00")
    # Go emits nanoseconds; datetime only takes microseconds
    iso = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), iso, count=1)
    try:
        dt = datetime.fromisoformat(iso)
    except ValueError:
        logger.debug("Unparseable timestamp %r", val)
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _as_int(val: Any) -> int:
    try:
        return int(val or 0)
    except (TypeError, ValueError):
        return 0


@dataclass(frozen=True)
class FileEntry:
    """One row of a directory listing. ``path`` is the identity key."""

    path: str
    name: str
    is_dir: bool = False
    size: int = 0
    modified: Optional[datetime] = None
    mime_type: str = ""

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "FileEntry":
        path = normalize_path(str(data.get("path") or data.get("name") or ""))
        is_dir = bool(data.get("is_dir"))
        return cls(
            path=path,
            name=str(data.get("name") or basename(path)),
            is_dir=is_dir,
            size=0 if is_dir else _as_int(data.get("size")),
            modified=parse_timestamp(data.get("modified")),
            mime_type=str(data.get("mime_type") or ""),
        )

    @property
    def parent(self) -> str:
        return parent_path(self.path)

    @property
    def extension(self) -> str:
        if self.is_dir or "." not in self.name.strip("."):
            return ""
        return self.name.rsplit(".", 1)[-1].lower()


@dataclass(frozen=True)
class FileMetadata:
    path: str
    name: str = ""
    size: int = 0
    mime_type: str = ""
    sha256: str = ""
    created: Optional[datetime] = None
    modified: Optional[datetime] = None
    public_url: str = ""

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "FileMetadata":
        path = normalize_path(str(data.get("path") or ""))
        return cls(
            path=path,
            name=str(data.get("name") or basename(path)),
            size=_as_int(data.get("size")),
            mime_type=str(data.get("mime_type") or ""),
            sha256=str(data.get("sha256") or ""),
            created=parse_timestamp(data.get("created")),
            modified=parse_timestamp(data.get("modified")),
            public_url=str(data.get("public_url") or ""),
        )


@dataclass(frozen=True)
class LogEntry:
    id: int
    action: str
    file_path: str
    timestamp: Optional[datetime] = None
    source_ip: str = ""

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "LogEntry":
        return cls(
            id=_as_int(data.get("id")),
            action=str(data.get("action") or ""),
            file_path=str(data.get("file_path") or ""),
            timestamp=parse_timestamp(data.get("timestamp")),
            source_ip=str(data.get("source_ip") or ""),
        )

    @property
    def normalized_path(self) -> str:
        return self.file_path.replace("\\", "/")

    def transition(self) -> Optional[Tuple[str, str]]:
        """(old, new) for move/rename rows, otherwise None."""
        if self.action not in ("move", "rename"):
            return None
        raw = self.normalized_path
        if TRANSITION_SEPARATOR not in raw:
            return None
        old, _, new = raw.partition(TRANSITION_SEPARATOR)
        return old, new


def normalize_extension(ext: str) -> str:
    return (ext or "").strip().lower().lstrip(".")


def is_valid_extension(ext: str) -> bool:
    return bool(_EXTENSION.match(ext or ""))


@dataclass
class ServerSettings:
    base_directory: str = ""
    max_upload_size: int = 0
    blocked_extensions: List[str] = field(default_factory=list)
    public_hostname: str = ""

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "ServerSettings":
        return cls(
            base_directory=str(data.get("base_directory") or ""),
            max_upload_size=_as_int(data.get("max_upload_size")),
            blocked_extensions=[str(e) for e in (data.get("blocked_extensions") or [])],
            public_hostname=str(data.get("public_hostname") or ""),
        )

    def to_json(self) -> Dict[str, Any]:
        return {
            "base_directory": self.base_directory,
            "max_upload_size": self.max_upload_size,
            "blocked_extensions": list(self.blocked_extensions),
            "public_hostname": self.public_hostname,
        }

    def block_extension(self, ext: str) -> str:
        normalized = normalize_extension(ext)
        if not is_valid_extension(normalized):
            raise PreconditionError(f'"{ext}" is not a valid extension')
        if normalized in self.blocked_extensions:
            raise PreconditionError(f'"{normalized}" is already blocked')
        self.blocked_extensions.append(normalized)
        return normalized

    def unblock_extension(self, ext: str) -> None:
        normalized = normalize_extension(ext)
        self.blocked_extensions = [e for e in self.blocked_extensions if e != normalized]
