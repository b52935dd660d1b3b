from datetime import datetime, timezone
from typing import Optional

from hostdeck.models.entries import FileEntry


def human_size(size: int) -> str:
    try:
        sz = int(size)
    except (TypeError, ValueError):
        return str(size)
    if sz >= 1024 * 1024 * 1024:
        return f"{sz / (1024 * 1024 * 1024):.1f} GB"
    if sz >= 1024 * 1024:
        return f"{sz / (1024 * 1024):.1f} MB"
    if sz >= 1024:
        return f"{sz / 1024:.1f} KB"
    return f"{sz} B"


def format_modified(dt: Optional[datetime]) -> str:
    if dt is None:
        return ""
    # Normalize to local time for display
    if dt.tzinfo is not None:
        dt = dt.astimezone().replace(tzinfo=None)
    return dt.strftime("%Y-%m-%d %H:%M")


def relative_time(dt: Optional[datetime], now: Optional[datetime] = None) -> str:
    """'Just now', '5 mins ago', '2 hours ago', '3 days ago', else absolute."""
    if dt is None:
        return ""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    seconds = (now - dt).total_seconds()
    mins = int(seconds // 60)
    hours = int(seconds // 3600)
    days = int(seconds // 86400)
    if mins < 1:
        return "Just now"
    if mins < 60:
        return f"{mins} min{'' if mins == 1 else 's'} ago"
    if hours < 24:
        return f"{hours} hour{'' if hours == 1 else 's'} ago"
    if days < 7:
        return f"{days} day{'' if days == 1 else 's'} ago"
    return format_modified(dt)


def type_label(entry: FileEntry) -> str:
    if entry.is_dir:
        return "Folder"
    if entry.extension:
        return f"{entry.extension.upper()} File"
    return "File"


def size_label(entry: FileEntry) -> str:
    # Folders show a blank size column
    return "" if entry.is_dir else human_size(entry.size)
