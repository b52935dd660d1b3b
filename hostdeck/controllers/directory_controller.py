from __future__ import annotations

import logging
from functools import partial
from typing import Any, Callable, List, Optional

from PySide6.QtCore import QObject, Signal

from hostdeck.models.bulk_actions import BulkActionCoordinator, BulkResult, zip_filename
from hostdeck.models.entries import FileEntry, FileMetadata, ServerSettings
from hostdeck.models.errors import ConfirmationMismatchError, PreconditionError
from hostdeck.models.history import PathHistory
from hostdeck.models.paths import ROOT, normalize_path
from hostdeck.models.projection import SORT_DIRECTIONS, SORT_KEYS, next_sort, project
from hostdeck.models.selection import SelectionModel
from hostdeck.services.api.client import FileHostClient
from hostdeck.services.tasks import TaskRunner

logger = logging.getLogger(__name__)


class DirectoryController(QObject):
    """Owns the current path, its listing and everything derived from it.

    The listing is never patched locally: every successful mutation is
    followed by a fresh fetch of the current path. Each fetch carries a
    generation number and only the newest one may update the view, so a slow
    response for a path the user already left is dropped.
    """

    path_changed = Signal(str)
    # Emitted when back/forward availability changes
    nav_state_changed = Signal(bool, bool)
    listing_changed = Signal()
    loading_changed = Signal(bool)
    error_changed = Signal(str)
    selection_changed = Signal()
    details_changed = Signal(object)
    bulk_state_changed = Signal()
    # (operation, message)
    operation_succeeded = Signal(str, str)
    operation_failed = Signal(str, str)

    def __init__(
        self,
        client: FileHostClient,
        runner: TaskRunner,
        start_path: str = ROOT,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self.client = client
        self.runner = runner
        self.history = PathHistory(start_path)
        self.selection = SelectionModel()
        self.bulk = BulkActionCoordinator(client, runner, self.bulk_state_changed.emit)
        self.entries: List[FileEntry] = []
        self.loading = False
        self.error: Optional[str] = None
        self.query = ""
        self.sort_by = "name"
        self.sort_dir = "asc"
        self.details: Optional[FileEntry] = None
        self.public_hostname = ""
        self._generation = 0

    # ---- derived state ----
    @property
    def current_path(self) -> str:
        return self.history.current

    @property
    def displayed(self) -> List[FileEntry]:
        return project(self.entries, self.query, self.sort_by, self.sort_dir)

    @property
    def can_go_back(self) -> bool:
        return self.history.can_go_back

    @property
    def can_go_forward(self) -> bool:
        return self.history.can_go_forward

    @property
    def all_selected(self) -> bool:
        return self.selection.all_selected(self.displayed)

    @property
    def some_selected(self) -> bool:
        return self.selection.some_selected(self.displayed)

    # ---- loading ----
    def start(self) -> None:
        """Initial load: settings for copy-URL, then the listing."""
        self.runner.submit(self.client.get_settings, self._on_settings, self._on_settings_error)
        self._emit_nav()
        self.reload()

    def _on_settings(self, settings: ServerSettings) -> None:
        self.public_hostname = settings.public_hostname

    def _on_settings_error(self, exc: Exception) -> None:
        logger.warning("Failed to load settings: %s", exc)

    def reload(self) -> None:
        self._generation += 1
        generation = self._generation
        path = self.current_path
        self._set_loading(True)
        self.runner.submit(
            partial(self.client.list, path),
            partial(self._on_listing, generation, path),
            partial(self._on_listing_error, generation, path),
        )

    def _on_listing(self, generation: int, path: str, files: List[FileEntry]) -> None:
        if generation != self._generation:
            logger.debug("Dropping stale listing for %s", path)
            return
        self.entries = list(files)
        self.error = None
        self.selection.retain(self.entries)
        if self.details is not None:
            fresh = next((e for e in self.entries if e.path == self.details.path), None)
            if fresh != self.details:
                self.details = fresh
                self.details_changed.emit(fresh)
        self._set_loading(False)
        self.error_changed.emit("")
        self.listing_changed.emit()
        self.selection_changed.emit()

    def _on_listing_error(self, generation: int, path: str, exc: Exception) -> None:
        if generation != self._generation:
            logger.debug("Dropping stale listing error for %s: %s", path, exc)
            return
        logger.error("Failed to load %s: %s", path, exc)
        self.entries = []
        self.error = str(exc) or "Failed to load files"
        self.selection.clear()
        self._set_loading(False)
        self.error_changed.emit(self.error)
        self.listing_changed.emit()
        self.selection_changed.emit()

    def _set_loading(self, on: bool) -> None:
        if self.loading != on:
            self.loading = on
            self.loading_changed.emit(on)

    # ---- navigation ----
    def open_folder(self, target: FileEntry | str) -> bool:
        path = target.path if isinstance(target, FileEntry) else target
        if isinstance(target, FileEntry) and not target.is_dir:
            return False
        return self._moved(self.history.open_folder(path))

    def navigate_to(self, path: str) -> bool:
        return self._moved(self.history.navigate_to(path))

    def go_up(self) -> bool:
        return self._moved(self.history.go_up())

    def go_back(self) -> bool:
        return self._moved(self.history.go_back() is not None)

    def go_forward(self) -> bool:
        return self._moved(self.history.go_forward() is not None)

    def _moved(self, changed: bool) -> bool:
        if not changed:
            return False
        # A different directory never keeps the old selection or details
        self.selection.clear()
        self.details = None
        self.entries = []
        self.details_changed.emit(None)
        self.selection_changed.emit()
        self.path_changed.emit(self.current_path)
        self._emit_nav()
        self.reload()
        return True

    def _emit_nav(self) -> None:
        self.nav_state_changed.emit(self.can_go_back, self.can_go_forward)

    # ---- projection ----
    def set_query(self, query: str) -> None:
        if query != self.query:
            self.query = query
            self.listing_changed.emit()

    def set_sort(self, sort_by: str, sort_dir: str = "asc") -> None:
        if sort_by not in SORT_KEYS or sort_dir not in SORT_DIRECTIONS:
            raise ValueError(f"Unsupported sort: {sort_by} {sort_dir}")
        self.sort_by, self.sort_dir = sort_by, sort_dir
        self.listing_changed.emit()

    def sort_by_column(self, column: str) -> None:
        self.set_sort(*next_sort(self.sort_by, self.sort_dir, column))

    # ---- selection ----
    def activate(self, entry: FileEntry) -> None:
        """Plain click: folders open, files are selected and shown.

        While a multi-selection is being built, a plain click toggles instead.
        A lone selection made by viewing details does not count as one.
        """
        if entry.is_dir:
            self.open_folder(entry)
            return
        if self.selection.is_multi_select_mode and not self._viewing_only_details():
            self.toggle_selection(entry)
            return
        if self.selection.select_for_details(entry):
            self.details = entry
            self.details_changed.emit(entry)
        self.selection_changed.emit()

    def _viewing_only_details(self) -> bool:
        return (
            len(self.selection) == 1
            and self.details is not None
            and self.details.path in self.selection
        )

    def toggle_selection(self, entry: FileEntry) -> bool:
        selected = self.selection.toggle(entry)
        self.selection_changed.emit()
        return selected

    def extend_selection(self, index: int) -> None:
        self.selection.extend_to(self.displayed, index)
        self.selection_changed.emit()

    def select_range(self, start: int, end: int) -> None:
        self.selection.select_range(self.displayed, start, end)
        self.selection_changed.emit()

    def select_all(self) -> bool:
        result = self.selection.select_all(self.displayed)
        self.selection_changed.emit()
        return result

    def clear_selection(self) -> bool:
        if not self.bulk.can_clear_selection:
            return False
        self.selection.clear()
        self.selection_changed.emit()
        return True

    def show_details(self, entry: FileEntry) -> None:
        self.details = entry
        self.details_changed.emit(entry)

    def close_details(self) -> None:
        if self.details is not None:
            self.details = None
            self.details_changed.emit(None)

    def load_metadata(
        self,
        entry: FileEntry,
        on_loaded: Callable[[FileMetadata], None],
        on_failed: Callable[[str], None],
    ) -> None:
        self.runner.submit(
            partial(self.client.metadata, entry.path),
            on_loaded,
            lambda exc: on_failed(str(exc) or "Failed to load metadata"),
        )

    # ---- single mutations ----
    def mkdir(self, name: str) -> None:
        name = (name or "").strip()
        if not name:
            raise PreconditionError("Folder name is required")
        self._mutate(
            "mkdir",
            partial(self.client.mkdir, self.current_path, name),
            f'Folder "{name}" created',
        )

    def rename(self, entry: FileEntry, new_name: str) -> None:
        new_name = (new_name or "").strip()
        if not new_name:
            raise PreconditionError("New name is required")
        if new_name == entry.name:
            raise PreconditionError("New name is the same as the current name")
        self._mutate(
            "rename",
            partial(self.client.rename, entry.path, new_name),
            f'Renamed to "{new_name}"',
            closes_details=True,
        )

    def move(self, entry: FileEntry, destination: str) -> None:
        destination = normalize_path(destination)
        if destination == entry.parent:
            raise PreconditionError("Item is already in that folder")
        if entry.is_dir and (destination + "/").startswith(entry.path + "/"):
            raise PreconditionError("Cannot move a folder into itself")
        self._mutate(
            "move",
            partial(self.client.move, entry.path, destination),
            f'Moved to "{destination}"',
            closes_details=True,
        )

    def replace(self, entry: FileEntry, local_path: str) -> None:
        if entry.is_dir:
            raise PreconditionError("Only files can be replaced")
        self._mutate(
            "replace",
            partial(self.client.replace, entry.path, local_path),
            f'Replaced "{entry.name}"',
        )

    def delete_entry(self, entry: FileEntry, confirmation: str) -> None:
        """Delete one entry (file or folder), confirmed by its exact name."""
        if confirmation != entry.name:
            raise ConfirmationMismatchError(f"Type {entry.name} to confirm")
        self._mutate(
            "delete",
            partial(self.client.delete, entry.path, entry.name),
            f'Deleted "{entry.name}"',
            closes_details=True,
        )

    def _mutate(
        self,
        operation: str,
        fn: Callable[[], Any],
        message: str,
        closes_details: bool = False,
    ) -> None:
        def done(_result: Any) -> None:
            if closes_details:
                self.close_details()
            self.operation_succeeded.emit(operation, message)
            self.reload()

        def failed(exc: Exception) -> None:
            logger.error("%s failed: %s", operation, exc)
            self.operation_failed.emit(operation, str(exc) or f"{operation} failed")

        self.runner.submit(fn, done, failed)

    # ---- bulk ----
    def zip_filename(self) -> str:
        return zip_filename(self.selection.paths)

    def bulk_delete(self, confirmation: str) -> None:
        self.bulk.delete(self.selection.entries, confirmation, self._on_bulk_deleted)

    def _on_bulk_deleted(self, result: BulkResult) -> None:
        if result.ok:
            count = len(result.succeeded)
            self.selection.clear()
            self.close_details()
            self.selection_changed.emit()
            self.operation_succeeded.emit(
                "bulk_delete", f"{count} item{'' if count == 1 else 's'} deleted"
            )
        else:
            self.operation_failed.emit("bulk_delete", result.error or "Delete failed")
        # Partial successes must show up even when the batch failed
        self.reload()

    def download_zip(self, destination: str) -> None:
        self.bulk.zip(self.selection.entries, destination, self._on_zipped)

    def _on_zipped(self, result: BulkResult) -> None:
        # Selection is kept: the operation is non-destructive
        if result.ok:
            count = len(result.paths)
            self.operation_succeeded.emit(
                "zip",
                f"ZIP saved to {result.destination} ({count} item{'' if count == 1 else 's'})",
            )
        else:
            self.operation_failed.emit("zip", result.error or "Failed to create ZIP")

    # ---- misc ----
    def copy_url(self, entry: FileEntry) -> str:
        if not self.public_hostname:
            raise PreconditionError("Public hostname not configured. Set it in the server settings.")
        return f"https://{self.public_hostname}{entry.path}"
