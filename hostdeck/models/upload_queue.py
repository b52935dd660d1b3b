from __future__ import annotations

import logging
import os
from collections import deque
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional

from hostdeck.models.errors import UploadInProgressError
from hostdeck.services.tasks import TaskRunner

logger = logging.getLogger(__name__)

# (local_path, target_directory, overwrite, on_progress) -> server response
Uploader = Callable[[str, str, bool, Callable[[int], None]], Any]


class UploadStatus(str, Enum):
    PENDING = "pending"
    UPLOADING = "uploading"
    DONE = "done"
    ERROR = "error"


@dataclass
class UploadItem:
    path: str
    status: UploadStatus = UploadStatus.PENDING
    progress: int = 0
    error: Optional[str] = None

    @property
    def name(self) -> str:
        return os.path.basename(self.path)

    @property
    def size(self) -> int:
        try:
            return os.path.getsize(self.path)
        except OSError:
            return 0


class UploadQueue:
    """Local files waiting to be uploaded, driven strictly one at a time.

    Items are keyed by file name. A failing item is annotated and the run
    moves on; when a run ends without errors the queue empties itself and
    ``on_complete`` fires, otherwise everything stays for inspection.
    """

    def __init__(
        self,
        uploader: Uploader,
        runner: TaskRunner,
        on_change: Optional[Callable[[Optional[UploadItem]], None]] = None,
        on_complete: Optional[Callable[[], None]] = None,
    ) -> None:
        self._uploader = uploader
        self._runner = runner
        self.on_change = on_change
        self.on_complete = on_complete
        self._items: Dict[str, UploadItem] = {}
        self._todo: Deque[UploadItem] = deque()
        self._running = False
        self.target: Optional[str] = None
        self.overwrite = False

    # ---- reads ----
    @property
    def items(self) -> List[UploadItem]:
        return list(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def get(self, name: str) -> Optional[UploadItem]:
        return self._items.get(name)

    @property
    def running(self) -> bool:
        return self._running

    @property
    def has_errors(self) -> bool:
        return any(i.status is UploadStatus.ERROR for i in self._items.values())

    @property
    def pending_count(self) -> int:
        return sum(1 for i in self._items.values() if i.status is UploadStatus.PENDING)

    # ---- edits ----
    def enqueue(self, paths: Iterable[str]) -> None:
        """Replace the queue; every item starts pending at 0%."""
        self._guard_idle("replace the upload queue")
        self._items = {}
        self._put(paths)

    def remove(self, name: str) -> None:
        self._guard_idle("remove files")
        if self._items.pop(name, None) is not None:
            self._notify(None)

    def clear(self) -> None:
        self._guard_idle("clear the upload queue")
        self._items = {}
        self._notify(None)

    def _put(self, paths: Iterable[str]) -> None:
        for p in paths:
            item = UploadItem(path=str(p))
            self._items[item.name] = item
        self._notify(None)

    def _guard_idle(self, what: str) -> None:
        if self._running:
            raise UploadInProgressError(f"Cannot {what} while an upload is running")

    # ---- run ----
    def start(self, target: str, overwrite: bool = False) -> bool:
        """Upload every pending item to ``target``. Returns False if nothing to do."""
        self._guard_idle("start another upload")
        pending = [i for i in self._items.values() if i.status is UploadStatus.PENDING]
        if not pending:
            return False
        self.target = target
        self.overwrite = overwrite
        self._todo = deque(pending)
        self._running = True
        logger.info("Uploading %d file(s) to %s", len(pending), target)
        self._next()
        return True

    def _next(self) -> None:
        if not self._todo:
            self._finish()
            return
        item = self._todo.popleft()
        item.status = UploadStatus.UPLOADING
        item.progress = 0
        item.error = None
        self._notify(item)
        self._runner.submit(
            partial(self._upload, item, self.target or "/", self.overwrite),
            partial(self._on_done, item),
            partial(self._on_failed, item),
        )

    def _upload(self, item: UploadItem, target: str, overwrite: bool) -> Any:
        def report(pct: int) -> None:
            self._runner.call_soon(partial(self._on_progress, item, pct))

        return self._uploader(item.path, target, overwrite, report)

    def _on_progress(self, item: UploadItem, pct: int) -> None:
        if item.status is not UploadStatus.UPLOADING:
            return
        item.progress = max(0, min(100, int(pct)))
        self._notify(item)

    def _on_done(self, item: UploadItem, _result: Any) -> None:
        item.status = UploadStatus.DONE
        item.progress = 100
        self._notify(item)
        self._next()

    def _on_failed(self, item: UploadItem, exc: Exception) -> None:
        item.status = UploadStatus.ERROR
        item.error = str(exc) or "Upload failed"
        logger.warning("Upload of %s failed: %s", item.name, item.error)
        self._notify(item)
        self._next()

    def _finish(self) -> None:
        self._running = False
        if self.has_errors:
            self._notify(None)
            return
        self._items = {}
        self._notify(None)
        if self.on_complete is not None:
            self.on_complete()

    def _notify(self, item: Optional[UploadItem]) -> None:
        if self.on_change is not None:
            self.on_change(item)
