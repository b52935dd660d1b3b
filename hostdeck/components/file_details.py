from typing import Optional

from PySide6.QtCore import Signal
from PySide6.QtGui import QGuiApplication
from PySide6.QtWidgets import (
    QFileDialog,
    QFormLayout,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMessageBox,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from hostdeck.components.delete_dialog import DeleteConfirmDialog
from hostdeck.components.folder_picker import FolderPickerDialog
from hostdeck.components.formatting import format_modified, human_size, relative_time
from hostdeck.controllers.directory_controller import DirectoryController
from hostdeck.models.entries import FileEntry, FileMetadata
from hostdeck.models.errors import PreconditionError


class FileDetailsPanel(QWidget):
    """Metadata and single-item actions for the entry shown in details."""

    closed = Signal()

    def __init__(self, controller: DirectoryController, parent=None) -> None:
        super().__init__(parent)
        self.controller = controller
        self.entry: Optional[FileEntry] = None
        self.metadata: Optional[FileMetadata] = None
        self.init_ui()
        self.controller.details_changed.connect(self.set_entry)
        self.set_entry(None)

    def init_ui(self) -> None:
        layout = QVBoxLayout(self)
        header = QHBoxLayout()
        self.title_label = QLabel("")
        self.title_label.setStyleSheet("font-weight: bold;")
        self.close_btn = QPushButton("Close")
        header.addWidget(self.title_label, 1)
        header.addWidget(self.close_btn)
        layout.addLayout(header)

        form = QFormLayout()
        self.size_label = QLabel("")
        self.type_label = QLabel("")
        self.modified_label = QLabel("")
        self.sha_label = QLabel("")
        self.sha_label.setWordWrap(True)
        self.url_label = QLabel("")
        self.url_label.setWordWrap(True)
        form.addRow("Size", self.size_label)
        form.addRow("Type", self.type_label)
        form.addRow("Modified", self.modified_label)
        form.addRow("SHA-256", self.sha_label)
        form.addRow("Public URL", self.url_label)
        layout.addLayout(form)

        rename_row = QHBoxLayout()
        self.rename_input = QLineEdit()
        self.rename_btn = QPushButton("Rename")
        rename_row.addWidget(self.rename_input, 1)
        rename_row.addWidget(self.rename_btn)
        layout.addLayout(rename_row)

        actions = QHBoxLayout()
        self.move_btn = QPushButton("Move…")
        self.replace_btn = QPushButton("Replace…")
        self.copy_url_btn = QPushButton("Copy URL")
        self.delete_btn = QPushButton("Delete")
        for btn in (self.move_btn, self.replace_btn, self.copy_url_btn, self.delete_btn):
            actions.addWidget(btn)
        layout.addLayout(actions)

        self.status_label = QLabel("")
        self.status_label.setStyleSheet("color: #aaa;")
        layout.addWidget(self.status_label)
        layout.addStretch(1)

        self.close_btn.clicked.connect(self.on_close)
        self.rename_btn.clicked.connect(self.on_rename)
        self.rename_input.returnPressed.connect(self.on_rename)
        self.move_btn.clicked.connect(self.on_move)
        self.replace_btn.clicked.connect(self.on_replace)
        self.copy_url_btn.clicked.connect(self.on_copy_url)
        self.delete_btn.clicked.connect(self.on_delete)

    def set_entry(self, entry: Optional[FileEntry]) -> None:
        self.entry = entry
        self.metadata = None
        self.setVisible(entry is not None)
        if entry is None:
            return
        self.title_label.setText(entry.name)
        self.rename_input.setText(entry.name)
        self.size_label.setText("" if entry.is_dir else human_size(entry.size))
        self.type_label.setText("Folder" if entry.is_dir else (entry.mime_type or "File"))
        self.modified_label.setText(relative_time(entry.modified))
        self.sha_label.setText("")
        self.url_label.setText("")
        self.replace_btn.setEnabled(not entry.is_dir)
        if entry.is_dir:
            self.status_label.setText("")
            return
        self.status_label.setText("Loading metadata…")
        self.controller.load_metadata(
            entry,
            lambda meta, e=entry: self._on_metadata(e, meta),
            lambda msg, e=entry: self._on_metadata_failed(e, msg),
        )

    def _on_metadata(self, entry: FileEntry, meta: FileMetadata) -> None:
        if self.entry is None or entry.path != self.entry.path:
            return
        self.metadata = meta
        self.size_label.setText(human_size(meta.size))
        self.type_label.setText(meta.mime_type or "File")
        self.modified_label.setText(format_modified(meta.modified))
        self.sha_label.setText(meta.sha256)
        self.url_label.setText(meta.public_url)
        self.status_label.setText("")

    def _on_metadata_failed(self, entry: FileEntry, message: str) -> None:
        if self.entry is None or entry.path != self.entry.path:
            return
        self.status_label.setText(message)

    # ---- actions ----
    def on_close(self) -> None:
        self.controller.close_details()
        self.closed.emit()

    def on_rename(self) -> None:
        if self.entry is None:
            return
        try:
            self.controller.rename(self.entry, self.rename_input.text())
        except PreconditionError as e:
            self.status_label.setText(str(e))

    def on_move(self) -> None:
        if self.entry is None:
            return
        dlg = FolderPickerDialog(
            self.controller.client,
            self.controller.runner,
            self.entry,
            start_path=self.controller.current_path,
            parent=self,
        )
        if dlg.exec():
            try:
                self.controller.move(self.entry, dlg.destination)
            except PreconditionError as e:
                self.status_label.setText(str(e))

    def on_replace(self) -> None:
        if self.entry is None or self.entry.is_dir:
            return
        local_path, _ = QFileDialog.getOpenFileName(self, f"Replace {self.entry.name}")
        if local_path:
            self.controller.replace(self.entry, local_path)

    def on_copy_url(self) -> None:
        if self.entry is None:
            return
        try:
            url = self.controller.copy_url(self.entry)
        except PreconditionError as e:
            QMessageBox.critical(self, "Copy URL", str(e))
            return
        QGuiApplication.clipboard().setText(url)
        self.status_label.setText("URL copied to clipboard")

    def on_delete(self) -> None:
        if self.entry is None:
            return
        dlg = DeleteConfirmDialog([self.entry], parent=self)
        if dlg.exec():
            try:
                self.controller.delete_entry(self.entry, dlg.confirmation())
            except PreconditionError as e:
                self.status_label.setText(str(e))
