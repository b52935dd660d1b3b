import logging
from functools import partial
from typing import List

from PySide6.QtCore import Qt
from PySide6.QtWidgets import (
    QDialog,
    QDialogButtonBox,
    QHBoxLayout,
    QLabel,
    QListWidget,
    QListWidgetItem,
    QPushButton,
    QVBoxLayout,
)

from hostdeck.models.entries import FileEntry
from hostdeck.models.paths import ROOT, normalize_path, parent_path
from hostdeck.services.api.client import FileHostClient
from hostdeck.services.tasks import TaskRunner

logger = logging.getLogger(__name__)


class FolderPickerDialog(QDialog):
    """Browse folders only and pick a destination for ``entry``."""

    def __init__(
        self,
        client: FileHostClient,
        runner: TaskRunner,
        entry: FileEntry,
        start_path: str = ROOT,
        parent=None,
    ) -> None:
        super().__init__(parent)
        self.client = client
        self.runner = runner
        self.entry = entry
        self.current_path = normalize_path(start_path)
        self._generation = 0
        self.setWindowTitle(f"Move {entry.name}")
        self.setModal(True)
        self.resize(420, 360)

        layout = QVBoxLayout(self)
        nav = QHBoxLayout()
        self.up_btn = QPushButton("Up")
        self.home_btn = QPushButton("Home")
        self.path_label = QLabel(self.current_path)
        nav.addWidget(self.up_btn)
        nav.addWidget(self.home_btn)
        nav.addWidget(self.path_label, 1)
        layout.addLayout(nav)

        self.folder_list = QListWidget()
        layout.addWidget(self.folder_list)
        self.status_label = QLabel("")
        self.status_label.setStyleSheet("color: #aaa;")
        layout.addWidget(self.status_label)

        buttons = QDialogButtonBox(QDialogButtonBox.StandardButton.Cancel)
        self.move_btn = QPushButton("Move here")
        buttons.addButton(self.move_btn, QDialogButtonBox.ButtonRole.AcceptRole)
        buttons.rejected.connect(self.reject)
        self.move_btn.clicked.connect(self.accept)
        layout.addWidget(buttons)

        self.up_btn.clicked.connect(self.go_up)
        self.home_btn.clicked.connect(lambda: self.open_path(ROOT))
        self.folder_list.itemDoubleClicked.connect(self._on_item_activated)

        self.load()

    @property
    def destination(self) -> str:
        return self.current_path

    def can_move_here(self) -> bool:
        if self.current_path == self.entry.parent:
            return False
        if self.entry.is_dir and (self.current_path + "/").startswith(self.entry.path + "/"):
            return False
        return True

    def open_path(self, path: str) -> None:
        self.current_path = normalize_path(path)
        self.load()

    def go_up(self) -> None:
        self.open_path(parent_path(self.current_path))

    def load(self) -> None:
        self._generation += 1
        self.path_label.setText(self.current_path)
        self.up_btn.setEnabled(self.current_path != ROOT)
        self.move_btn.setEnabled(self.can_move_here())
        self.folder_list.clear()
        self.status_label.setText("Loading…")
        self.runner.submit(
            partial(self.client.list, self.current_path),
            partial(self._on_loaded, self._generation),
            partial(self._on_failed, self._generation),
        )

    def _on_loaded(self, generation: int, files: List[FileEntry]) -> None:
        if generation != self._generation:
            return
        # Only folders, and never the entry being moved
        folders = sorted(
            (f for f in files if f.is_dir and f.path != self.entry.path),
            key=lambda f: f.name.casefold(),
        )
        for folder in folders:
            item = QListWidgetItem(folder.name)
            item.setData(Qt.ItemDataRole.UserRole, folder.path)
            self.folder_list.addItem(item)
        self.status_label.setText("" if folders else "No subfolders")

    def _on_failed(self, generation: int, exc: Exception) -> None:
        if generation != self._generation:
            return
        logger.error("Failed to list folders in %s: %s", self.current_path, exc)
        self.status_label.setText(str(exc) or "Failed to load folders")

    def _on_item_activated(self, item: QListWidgetItem) -> None:
        path = item.data(Qt.ItemDataRole.UserRole)
        if path:
            self.open_path(path)
