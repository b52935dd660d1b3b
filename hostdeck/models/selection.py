from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence, Union

from hostdeck.models.entries import FileEntry


class SelectionModel:
    """Ordered set of selected files keyed by path.

    Directories are never admitted; handlers that are handed one ignore it.
    Derived flags (multi-select mode, all/some selected) are computed from the
    set on every read.
    """

    def __init__(self) -> None:
        self._items: Dict[str, FileEntry] = {}
        # Path of the row last clicked or toggled; shift-range grows from it
        self.anchor: Optional[str] = None

    # ---- reads ----
    @property
    def entries(self) -> List[FileEntry]:
        return list(self._items.values())

    @property
    def paths(self) -> List[str]:
        return list(self._items.keys())

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item: Union[FileEntry, str]) -> bool:
        key = item.path if isinstance(item, FileEntry) else item
        return key in self._items

    @property
    def is_multi_select_mode(self) -> bool:
        return bool(self._items)

    def all_selected(self, display: Sequence[FileEntry]) -> bool:
        selectable = [e for e in display if not e.is_dir]
        return bool(selectable) and all(e.path in self._items for e in selectable)

    def some_selected(self, display: Sequence[FileEntry]) -> bool:
        hits = sum(1 for e in display if not e.is_dir and e.path in self._items)
        return hits > 0 and not self.all_selected(display)

    # ---- transitions ----
    def select_for_details(self, entry: FileEntry) -> bool:
        """Plain click: select exactly ``entry``; clicking the lone selection clears it.

        Returns True when ``entry`` ends up selected.
        """
        if entry.is_dir:
            return False
        self.anchor = entry.path
        if list(self._items) == [entry.path]:
            self._items.clear()
            return False
        self._items = {entry.path: entry}
        return True

    def toggle(self, entry: FileEntry) -> bool:
        """Checkbox / ctrl-click. Returns True when ``entry`` ends up selected."""
        if entry.is_dir:
            return False
        self.anchor = entry.path
        if entry.path in self._items:
            del self._items[entry.path]
            return False
        self._items[entry.path] = entry
        return True

    def select_range(self, display: Sequence[FileEntry], start: int, end: int) -> List[FileEntry]:
        """Union the files of ``display[min:max+1]`` into the selection.

        Returns the entries that were newly added, in display order.
        """
        if not display:
            return []
        lo = max(0, min(start, end))
        hi = min(len(display) - 1, max(start, end))
        added: List[FileEntry] = []
        for entry in display[lo : hi + 1]:
            if entry.is_dir or entry.path in self._items:
                continue
            self._items[entry.path] = entry
            added.append(entry)
        return added

    def extend_to(self, display: Sequence[FileEntry], index: int) -> List[FileEntry]:
        """Shift-click on ``display[index]``: range from the anchor row.

        With no anchor on screen this is a plain toggle. Either way the
        clicked row becomes the next anchor.
        """
        if not 0 <= index < len(display):
            return []
        clicked = display[index]
        anchor_index = next(
            (i for i, entry in enumerate(display) if entry.path == self.anchor), None
        )
        if anchor_index is None:
            return [clicked] if self.toggle(clicked) else []
        added = self.select_range(display, anchor_index, index)
        self.anchor = clicked.path
        return added

    def select_all(self, display: Sequence[FileEntry]) -> bool:
        """Select every file in ``display``, or clear if they already all are.

        Returns True when the result is "all selected".
        """
        selectable = [e for e in display if not e.is_dir]
        if not selectable:
            return False
        if self.all_selected(display):
            self.clear()
            return False
        self._items = {e.path: e for e in selectable}
        return True

    def clear(self) -> None:
        self._items.clear()
        self.anchor = None

    def remove(self, path: str) -> None:
        self._items.pop(path, None)

    def retain(self, listing: Iterable[FileEntry]) -> None:
        """Drop entries missing from ``listing`` and refresh the kept ones."""
        fresh = {e.path: e for e in listing if not e.is_dir}
        self._items = {p: fresh[p] for p in self._items if p in fresh}
        if self.anchor is not None and self.anchor not in fresh:
            self.anchor = None
