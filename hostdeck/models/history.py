from typing import List, Optional

from hostdeck.models.paths import ROOT, normalize_path, parent_path


class PathHistory:
    """Back/forward stacks over directory paths.

    ``future`` only ever holds paths that were left through ``go_back``; any
    other way of changing ``current`` pushes onto ``past`` and clears it.
    """

    def __init__(self, current: str = ROOT) -> None:
        self.current: str = normalize_path(current)
        self.past: List[str] = []
        self.future: List[str] = []

    @property
    def can_go_back(self) -> bool:
        return bool(self.past)

    @property
    def can_go_forward(self) -> bool:
        return bool(self.future)

    @property
    def can_go_up(self) -> bool:
        return self.current != ROOT

    def open_folder(self, path: str) -> bool:
        """Move to ``path``. Returns False when already there."""
        target = normalize_path(path)
        if target == self.current:
            return False
        self.past.append(self.current)
        self.future = []
        self.current = target
        return True

    # Breadcrumb clicks and typed locations are plain pushes too
    navigate_to = open_folder

    def go_up(self) -> bool:
        if not self.can_go_up:
            return False
        return self.open_folder(parent_path(self.current))

    def go_back(self) -> Optional[str]:
        if not self.past:
            return None
        self.future.insert(0, self.current)
        self.current = self.past.pop()
        return self.current

    def go_forward(self) -> Optional[str]:
        if not self.future:
            return None
        self.past.append(self.current)
        self.current = self.future.pop(0)
        return self.current
