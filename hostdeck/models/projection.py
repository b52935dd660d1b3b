import locale
from datetime import datetime, timezone
from functools import cmp_to_key
from typing import List, Sequence, Tuple

from hostdeck.models.entries import FileEntry

SORT_KEYS = ("name", "size", "modified")
SORT_DIRECTIONS = ("asc", "desc")

_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


def _sign(v: float) -> int:
    return (v > 0) - (v < 0)


def _compare(a: FileEntry, b: FileEntry, sort_by: str) -> int:
    if sort_by == "size":
        if a.is_dir and b.is_dir:
            return 0
        return _sign(a.size - b.size)
    if sort_by == "modified":
        ma = a.modified or _EPOCH
        mb = b.modified or _EPOCH
        return _sign((ma - mb).total_seconds())
    return _sign(locale.strcoll(a.name.casefold(), b.name.casefold()))


def project(
    entries: Sequence[FileEntry],
    query: str = "",
    sort_by: str = "name",
    sort_dir: str = "asc",
) -> List[FileEntry]:
    """Filter by name and sort, folders first. Never mutates ``entries``."""
    if sort_by not in SORT_KEYS:
        raise ValueError(f"Unknown sort key: {sort_by!r}")
    if sort_dir not in SORT_DIRECTIONS:
        raise ValueError(f"Unknown sort direction: {sort_dir!r}")

    needle = (query or "").casefold()
    rows = [e for e in entries if needle in e.name.casefold()] if needle else list(entries)
    flip = -1 if sort_dir == "desc" else 1

    def cmp(a: FileEntry, b: FileEntry) -> int:
        if a.is_dir != b.is_dir:
            return -1 if a.is_dir else 1
        # Negating the comparator (not reversing the list) keeps ties stable
        return flip * _compare(a, b, sort_by)

    return sorted(rows, key=cmp_to_key(cmp))


def next_sort(sort_by: str, sort_dir: str, column: str) -> Tuple[str, str]:
    """Header-click rule: same column flips direction, a new column starts ascending."""
    if column == sort_by:
        return sort_by, "desc" if sort_dir == "asc" else "asc"
    return column, "asc"
