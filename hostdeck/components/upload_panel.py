import logging
from typing import Callable, Dict, Iterable, Optional

from PySide6.QtCore import Qt, Signal
from PySide6.QtWidgets import (
    QCheckBox,
    QFileDialog,
    QHBoxLayout,
    QHeaderView,
    QLabel,
    QMessageBox,
    QProgressBar,
    QPushButton,
    QTreeWidget,
    QTreeWidgetItem,
    QVBoxLayout,
    QWidget,
)

from hostdeck.components.formatting import human_size
from hostdeck.models.errors import UploadInProgressError
from hostdeck.models.upload_queue import UploadItem, UploadQueue, UploadStatus
from hostdeck.services.api.client import FileHostClient
from hostdeck.services.tasks import TaskRunner

logger = logging.getLogger(__name__)

STATUS_TEXT = {
    UploadStatus.PENDING: "Pending",
    UploadStatus.UPLOADING: "Uploading",
    UploadStatus.DONE: "Done",
    UploadStatus.ERROR: "Error",
}


class UploadPanel(QWidget):
    """Queue of local files and the controls to upload them one by one."""

    upload_complete = Signal()

    def __init__(
        self,
        client: FileHostClient,
        runner: TaskRunner,
        target: Callable[[], str],
        parent=None,
    ) -> None:
        super().__init__(parent)
        self.client = client
        # Called at start time so the upload goes to the folder being viewed
        self.target = target
        self.queue = UploadQueue(
            self._upload_one, runner, on_change=self._on_queue_changed, on_complete=self._on_complete
        )
        self._rows: Dict[str, QTreeWidgetItem] = {}
        self._bars: Dict[str, QProgressBar] = {}
        self.setAcceptDrops(True)
        self.init_ui()
        self._refresh()

    def _upload_one(self, local_path, target, overwrite, on_progress):
        return self.client.upload(local_path, target, overwrite, on_progress)

    def init_ui(self) -> None:
        layout = QVBoxLayout(self)
        self.target_label = QLabel("")
        layout.addWidget(self.target_label)

        self.file_tree = QTreeWidget()
        self.file_tree.setHeaderLabels(["Name", "Size", "Status", "Progress"])
        self.file_tree.setRootIsDecorated(False)
        self.file_tree.setUniformRowHeights(True)
        header = self.file_tree.header()
        header.setStretchLastSection(False)
        header.setSectionResizeMode(QHeaderView.ResizeMode.ResizeToContents)
        header.setSectionResizeMode(0, QHeaderView.ResizeMode.Stretch)
        layout.addWidget(self.file_tree)

        self.overwrite_check = QCheckBox("Overwrite existing files")
        layout.addWidget(self.overwrite_check)

        buttons = QHBoxLayout()
        self.add_btn = QPushButton("Add files…")
        self.remove_btn = QPushButton("Remove")
        self.upload_btn = QPushButton("Upload")
        self.cancel_btn = QPushButton("Cancel")
        buttons.addWidget(self.add_btn)
        buttons.addWidget(self.remove_btn)
        buttons.addStretch(1)
        buttons.addWidget(self.upload_btn)
        buttons.addWidget(self.cancel_btn)
        layout.addLayout(buttons)

        self.status_label = QLabel("")
        self.status_label.setStyleSheet("color: #aaa;")
        layout.addWidget(self.status_label)

        self.add_btn.clicked.connect(self.on_add_clicked)
        self.remove_btn.clicked.connect(self.on_remove_clicked)
        self.upload_btn.clicked.connect(self.on_upload_clicked)
        self.cancel_btn.clicked.connect(self.on_cancel_clicked)
        self.file_tree.itemSelectionChanged.connect(self._refresh_buttons)

    # ---- queue edits ----
    def set_files(self, paths: Iterable[str]) -> None:
        """Start over with `paths`; earlier rows and their results are dropped."""
        self.queue.enqueue(paths)
        self.status_label.setText("")

    def on_add_clicked(self) -> None:
        paths, _ = QFileDialog.getOpenFileNames(self, "Select Files to Upload")
        if paths:
            try:
                self.set_files(paths)
            except UploadInProgressError as e:
                self.status_label.setText(str(e))

    def on_remove_clicked(self) -> None:
        item = self.file_tree.currentItem()
        if item is None:
            return
        try:
            self.queue.remove(item.text(0))
        except UploadInProgressError as e:
            self.status_label.setText(str(e))

    def on_cancel_clicked(self) -> None:
        # Cancel only clears a queue that is not running
        try:
            self.queue.clear()
        except UploadInProgressError as e:
            self.status_label.setText(str(e))
            return
        self.hide()

    def on_upload_clicked(self) -> bool:
        try:
            started = self.queue.start(self.target(), self.overwrite_check.isChecked())
        except UploadInProgressError as e:
            QMessageBox.critical(self, "Upload", str(e))
            return False
        if not started:
            self.status_label.setText("Nothing to upload")
        return started

    # ---- drag and drop ----
    def dragEnterEvent(self, event) -> None:
        if event.mimeData().hasUrls() and not self.queue.running:
            event.acceptProposedAction()
        else:
            event.ignore()

    def dropEvent(self, event) -> None:
        paths = [u.toLocalFile() for u in event.mimeData().urls() if u.isLocalFile()]
        if not paths:
            return
        try:
            self.set_files(paths)
        except UploadInProgressError as e:
            self.status_label.setText(str(e))
            return
        event.acceptProposedAction()

    # ---- rendering ----
    def _on_queue_changed(self, item: Optional[UploadItem]) -> None:
        if item is not None and item.name in self._rows:
            self._render_item(item)
            self._refresh_buttons()
        else:
            self._refresh()

    def _on_complete(self) -> None:
        self.status_label.setText("All uploads finished")
        self.upload_complete.emit()

    def _refresh(self) -> None:
        self.file_tree.clear()
        self._rows = {}
        self._bars = {}
        for item in self.queue.items:
            row = QTreeWidgetItem([item.name, human_size(item.size), "", ""])
            row.setData(0, Qt.ItemDataRole.UserRole, item.path)
            self.file_tree.addTopLevelItem(row)
            bar = QProgressBar()
            bar.setRange(0, 100)
            self.file_tree.setItemWidget(row, 3, bar)
            self._rows[item.name] = row
            self._bars[item.name] = bar
            self._render_item(item)
        self.target_label.setText(f"Upload to: {self.target()}")
        self._refresh_buttons()

    def _render_item(self, item: UploadItem) -> None:
        row = self._rows[item.name]
        status = STATUS_TEXT[item.status]
        if item.status is UploadStatus.ERROR and item.error:
            status = f"Error: {item.error}"
        row.setText(2, status)
        row.setToolTip(2, item.error or "")
        self._bars[item.name].setValue(item.progress)

    def _refresh_buttons(self) -> None:
        running = self.queue.running
        self.add_btn.setEnabled(not running)
        self.remove_btn.setEnabled(not running and self.file_tree.currentItem() is not None)
        self.cancel_btn.setEnabled(not running)
        self.overwrite_check.setEnabled(not running)
        self.upload_btn.setEnabled(not running and self.queue.pending_count > 0)
        if running:
            self.status_label.setText("Uploading…")
        elif self.queue.has_errors:
            self.status_label.setText("Some files failed to upload")
