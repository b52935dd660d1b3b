from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, List, Optional, Sequence, Tuple

from hostdeck.models.entries import FileEntry
from hostdeck.models.errors import (
    BulkActionBusyError,
    ConfirmationMismatchError,
    PreconditionError,
)
from hostdeck.models.paths import basename
from hostdeck.services.api.client import FileHostError
from hostdeck.services.tasks import TaskRunner

logger = logging.getLogger(__name__)

DELETE_KEYWORD = "DELETE"
GENERIC_ZIP_NAME = "download.zip"


def required_confirmation(entries: Sequence[FileEntry]) -> str:
    """A single entry is confirmed by its exact name, anything else by DELETE."""
    if len(entries) == 1:
        return entries[0].name
    return DELETE_KEYWORD


def confirmation_matches(entries: Sequence[FileEntry], text: str) -> bool:
    if not entries:
        return False
    if len(entries) == 1:
        return text == entries[0].name
    # The bulk prompt upper-cases what is typed
    return (text or "").upper() == DELETE_KEYWORD


def zip_filename(paths: Sequence[str]) -> str:
    if len(paths) == 1 and basename(paths[0]):
        return basename(paths[0]) + ".zip"
    return GENERIC_ZIP_NAME


@dataclass
class BulkResult:
    action: str
    paths: List[str]
    succeeded: List[str] = field(default_factory=list)
    failures: List[Tuple[str, str]] = field(default_factory=list)
    destination: Optional[str] = None

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def error(self) -> Optional[str]:
        """Most recent failure message."""
        return self.failures[-1][1] if self.failures else None


class BulkActionCoordinator:
    """Runs delete and zip over a snapshot of the selection.

    Only one bulk action may be in flight; while one is, the other and
    "clear selection" are unavailable.
    """

    def __init__(
        self,
        client: Any,
        runner: TaskRunner,
        on_state_changed: Optional[Callable[[], None]] = None,
    ) -> None:
        self._client = client
        self._runner = runner
        self.on_state_changed = on_state_changed
        self.deleting = False
        self.zipping = False

    @property
    def busy(self) -> bool:
        return self.deleting or self.zipping

    @property
    def can_clear_selection(self) -> bool:
        return not self.busy

    def can_delete(self, entries: Sequence[FileEntry]) -> bool:
        return bool(entries) and not self.busy

    def can_zip(self, entries: Sequence[FileEntry]) -> bool:
        return bool(entries) and not self.busy

    def _guard(self, entries: Sequence[FileEntry]) -> Tuple[FileEntry, ...]:
        if self.busy:
            raise BulkActionBusyError("Another bulk action is still running")
        snapshot = tuple(entries)
        if not snapshot:
            raise PreconditionError("Nothing selected")
        return snapshot

    # ---- delete ----
    def delete(
        self,
        entries: Sequence[FileEntry],
        confirmation: str,
        on_done: Callable[[BulkResult], None],
    ) -> None:
        snapshot = self._guard(entries)
        if not confirmation_matches(snapshot, confirmation):
            raise ConfirmationMismatchError(
                f"Type {required_confirmation(snapshot)} to confirm"
            )
        self.deleting = True
        self._changed()
        paths = [e.path for e in snapshot]
        self._runner.submit(
            partial(self._delete_all, snapshot),
            partial(self._finish, on_done),
            partial(self._crashed, "delete", paths, on_done),
        )

    def _delete_all(self, snapshot: Tuple[FileEntry, ...]) -> BulkResult:
        result = BulkResult("delete", [e.path for e in snapshot])
        # One call per entry, in order; a failure does not stop the rest
        for entry in snapshot:
            try:
                self._client.delete(entry.path, entry.name)
            except FileHostError as e:
                logger.warning("Delete of %s failed: %s", entry.path, e)
                result.failures.append((entry.path, str(e) or "Delete failed"))
            else:
                result.succeeded.append(entry.path)
        return result

    # ---- zip ----
    def zip(
        self,
        entries: Sequence[FileEntry],
        destination: str,
        on_done: Callable[[BulkResult], None],
    ) -> None:
        snapshot = self._guard(entries)
        self.zipping = True
        self._changed()
        paths = [e.path for e in snapshot]

        def fetch() -> BulkResult:
            self._client.zip(paths, destination)
            return BulkResult("zip", paths, succeeded=list(paths), destination=destination)

        self._runner.submit(
            fetch,
            partial(self._finish, on_done),
            partial(self._crashed, "zip", paths, on_done),
        )

    # ---- completion ----
    def _finish(self, on_done: Callable[[BulkResult], None], result: BulkResult) -> None:
        if result.action == "delete":
            self.deleting = False
        else:
            self.zipping = False
        self._changed()
        on_done(result)

    def _crashed(
        self,
        action: str,
        paths: List[str],
        on_done: Callable[[BulkResult], None],
        exc: Exception,
    ) -> None:
        fallback = "Delete failed" if action == "delete" else "Failed to create ZIP"
        logger.error("Bulk %s failed: %s", action, exc)
        result = BulkResult(action, paths, failures=[("", str(exc) or fallback)])
        self._finish(on_done, result)

    def _changed(self) -> None:
        if self.on_state_changed is not None:
            self.on_state_changed()
