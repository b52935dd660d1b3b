import logging
from typing import List, Optional

from PySide6.QtCore import Qt
from PySide6.QtGui import QKeySequence, QShortcut
from PySide6.QtWidgets import (
    QApplication,
    QFileDialog,
    QHBoxLayout,
    QHeaderView,
    QInputDialog,
    QLabel,
    QLineEdit,
    QProgressBar,
    QPushButton,
    QSplitter,
    QTreeWidget,
    QTreeWidgetItem,
    QVBoxLayout,
    QWidget,
)

from hostdeck.components.delete_dialog import DeleteConfirmDialog
from hostdeck.components.file_details import FileDetailsPanel
from hostdeck.components.formatting import format_modified, size_label, type_label
from hostdeck.components.upload_panel import UploadPanel
from hostdeck.controllers.directory_controller import DirectoryController
from hostdeck.models.entries import FileEntry
from hostdeck.models.errors import PreconditionError
from hostdeck.models.paths import breadcrumbs

logger = logging.getLogger(__name__)

# Header column -> sort key; the Type column is not sortable
COLUMN_SORT_KEYS = {0: "name", 1: "size", 3: "modified"}


class FileBrowser(QWidget):
    """Directory view for one file host, driven by a DirectoryController."""

    def __init__(self, controller: DirectoryController, parent=None) -> None:
        super().__init__(parent)
        self.controller = controller
        self.setAcceptDrops(True)
        self.init_ui()
        self._wire_controller()
        self._on_path_changed(controller.current_path)
        self._on_nav_state(controller.can_go_back, controller.can_go_forward)
        self._populate()

    def init_ui(self) -> None:
        self.main_layout = QVBoxLayout()
        self.main_layout.setContentsMargins(0, 0, 0, 0)
        self.main_layout.setSpacing(4)

        # --- Top bar ---
        self.top_bar = QHBoxLayout()
        self.back_btn = QPushButton("Back")
        self.forward_btn = QPushButton("Forward")
        self.up_btn = QPushButton("Up")
        self.location_input = QLineEdit()
        self.location_input.setPlaceholderText("/")
        self.refresh_btn = QPushButton("Refresh")
        for w in (self.back_btn, self.forward_btn, self.up_btn):
            self.top_bar.addWidget(w)
        self.top_bar.addWidget(self.location_input, 1)
        self.top_bar.addWidget(self.refresh_btn)
        self.main_layout.addLayout(self.top_bar)
        self.crumb_bar = QHBoxLayout()
        self.crumb_bar.setSpacing(0)
        self.main_layout.addLayout(self.crumb_bar)

        # --- Actions ---
        self.action_bar = QHBoxLayout()
        self.new_folder_btn = QPushButton("New folder")
        self.upload_btn = QPushButton("Upload")
        self.zip_btn = QPushButton("Download ZIP")
        self.delete_btn = QPushButton("Delete")
        self.clear_selection_btn = QPushButton("Clear selection")
        self.search_input = QLineEdit()
        self.search_input.setPlaceholderText("Search in this folder…")
        self.search_input.setClearButtonEnabled(True)
        for w in (
            self.new_folder_btn,
            self.upload_btn,
            self.zip_btn,
            self.delete_btn,
            self.clear_selection_btn,
        ):
            self.action_bar.addWidget(w)
        self.action_bar.addWidget(self.search_input, 1)
        self.main_layout.addLayout(self.action_bar)

        # --- Listing + details ---
        self.file_tree = QTreeWidget()
        self.file_tree.setHeaderLabels(["Name", "Size", "Type", "Date modified"])
        self.file_tree.setRootIsDecorated(False)
        self.file_tree.setUniformRowHeights(True)
        self.file_tree.setSelectionMode(QTreeWidget.SelectionMode.NoSelection)
        self.file_tree.setStyleSheet(
            "QTreeWidget { margin: 0; padding: 0; } QTreeWidget::item { padding: 4.5px; }"
        )
        header = self.file_tree.header()
        header.setStretchLastSection(False)
        header.setSectionResizeMode(QHeaderView.ResizeMode.ResizeToContents)
        header.setSectionResizeMode(0, QHeaderView.ResizeMode.Stretch)
        header.setSectionsClickable(True)
        header.setSortIndicatorShown(True)

        self.details_panel = FileDetailsPanel(self.controller)
        self.splitter = QSplitter(Qt.Orientation.Horizontal)
        self.splitter.addWidget(self.file_tree)
        self.splitter.addWidget(self.details_panel)
        self.splitter.setStretchFactor(0, 3)
        self.splitter.setStretchFactor(1, 1)
        self.main_layout.addWidget(self.splitter, 1)

        self.upload_panel = UploadPanel(
            self.controller.client,
            self.controller.runner,
            lambda: self.controller.current_path,
        )
        self.upload_panel.hide()
        self.main_layout.addWidget(self.upload_panel)

        # --- Status ---
        self.loading_bar = QProgressBar()
        self.loading_bar.setRange(0, 0)
        self.loading_bar.setMaximumHeight(4)
        self.loading_bar.setTextVisible(False)
        self.loading_bar.hide()
        self.main_layout.addWidget(self.loading_bar)
        self.message_label = QLabel("")
        self.message_label.setWordWrap(True)
        self.main_layout.addWidget(self.message_label)
        self.status_label = QLabel("Loading…")
        self.status_label.setStyleSheet("color: #aaa;")
        self.main_layout.addWidget(self.status_label)
        self.setLayout(self.main_layout)

        # --- UI events ---
        self.back_btn.clicked.connect(self.controller.go_back)
        self.forward_btn.clicked.connect(self.controller.go_forward)
        self.up_btn.clicked.connect(self.controller.go_up)
        self.refresh_btn.clicked.connect(self.controller.reload)
        self.location_input.returnPressed.connect(self.on_location_entered)
        self.new_folder_btn.clicked.connect(self.on_new_folder_clicked)
        self.upload_btn.clicked.connect(self.on_upload_clicked)
        self.zip_btn.clicked.connect(self.on_zip_clicked)
        self.delete_btn.clicked.connect(self.on_delete_clicked)
        self.clear_selection_btn.clicked.connect(self.controller.clear_selection)
        self.search_input.textChanged.connect(self.controller.set_query)
        header.sectionClicked.connect(self.on_header_clicked)
        self.file_tree.itemClicked.connect(self.on_item_clicked)
        self.file_tree.itemDoubleClicked.connect(self.on_item_double_clicked)
        self.upload_panel.upload_complete.connect(self._on_upload_complete)

        for sequence, slot in (
            (QKeySequence(QKeySequence.StandardKey.SelectAll), self.controller.select_all),
            (QKeySequence(Qt.Key.Key_Escape), self.controller.clear_selection),
            (QKeySequence(QKeySequence.StandardKey.Delete), self.on_delete_clicked),
        ):
            shortcut = QShortcut(sequence, self)
            shortcut.activated.connect(slot)

    def _wire_controller(self) -> None:
        c = self.controller
        c.path_changed.connect(self._on_path_changed)
        c.nav_state_changed.connect(self._on_nav_state)
        c.listing_changed.connect(self._populate)
        c.loading_changed.connect(self._on_loading)
        c.error_changed.connect(self._on_error)
        c.selection_changed.connect(self._sync_selection)
        c.bulk_state_changed.connect(self._refresh_actions)
        c.operation_succeeded.connect(self._on_operation_succeeded)
        c.operation_failed.connect(self._on_operation_failed)

    # ---- controller -> view ----
    def _on_path_changed(self, path: str) -> None:
        self.location_input.setText(path)
        self.up_btn.setEnabled(self.controller.history.can_go_up)
        self.message_label.setText("")
        self._rebuild_crumbs(path)

    def _rebuild_crumbs(self, path: str) -> None:
        while self.crumb_bar.count():
            w = self.crumb_bar.takeAt(0).widget()
            if w is not None:
                w.deleteLater()
        crumbs = breadcrumbs(path)
        for i, (label, target) in enumerate(crumbs):
            btn = QPushButton(label)
            btn.setFlat(True)
            # The last crumb is where we already are
            btn.setEnabled(i < len(crumbs) - 1)
            btn.clicked.connect(lambda _=False, p=target: self.controller.navigate_to(p))
            self.crumb_bar.addWidget(btn)
            if i < len(crumbs) - 1:
                self.crumb_bar.addWidget(QLabel("/"))
        self.crumb_bar.addStretch(1)

    def _on_nav_state(self, can_back: bool, can_forward: bool) -> None:
        self.back_btn.setEnabled(can_back)
        self.forward_btn.setEnabled(can_forward)

    def _on_loading(self, on: bool) -> None:
        self.loading_bar.setVisible(on)
        if on:
            self.status_label.setText("Loading…")
        else:
            self._update_status()

    def _on_error(self, message: str) -> None:
        if message:
            self.status_label.setText(f"Failed to load files: {message}")

    def _on_operation_succeeded(self, _operation: str, message: str) -> None:
        self.message_label.setStyleSheet("color: #3a3;")
        self.message_label.setText(message)

    def _on_operation_failed(self, _operation: str, message: str) -> None:
        self.message_label.setStyleSheet("color: #c33;")
        self.message_label.setText(message)

    def _populate(self) -> None:
        rows = self.controller.displayed
        self.file_tree.setUpdatesEnabled(False)
        self.file_tree.clear()
        items_buf: List[QTreeWidgetItem] = []
        for entry in rows:
            item = QTreeWidgetItem(
                [entry.name, size_label(entry), type_label(entry), format_modified(entry.modified)]
            )
            item.setData(0, Qt.ItemDataRole.UserRole, entry)
            if not entry.is_dir:
                # Display-only check mark; the controller owns the selection
                item.setCheckState(0, Qt.CheckState.Unchecked)
                item.setFlags(item.flags() & ~Qt.ItemFlag.ItemIsUserCheckable)
            items_buf.append(item)
        if items_buf:
            self.file_tree.addTopLevelItems(items_buf)
        self.file_tree.setUpdatesEnabled(True)

        column = {v: k for k, v in COLUMN_SORT_KEYS.items()}[self.controller.sort_by]
        order = (
            Qt.SortOrder.AscendingOrder
            if self.controller.sort_dir == "asc"
            else Qt.SortOrder.DescendingOrder
        )
        self.file_tree.header().setSortIndicator(column, order)
        self._sync_selection()

    def _sync_selection(self) -> None:
        selection = self.controller.selection
        for i in range(self.file_tree.topLevelItemCount()):
            item = self.file_tree.topLevelItem(i)
            entry = self.entry_for(item)
            if entry is None or entry.is_dir:
                continue
            state = Qt.CheckState.Checked if entry in selection else Qt.CheckState.Unchecked
            if item.checkState(0) != state:
                item.setCheckState(0, state)
        self._refresh_actions()
        self._update_status()

    def _refresh_actions(self) -> None:
        bulk = self.controller.bulk
        selected = self.controller.selection.entries
        self.zip_btn.setEnabled(bulk.can_zip(selected))
        self.delete_btn.setEnabled(bulk.can_delete(selected))
        self.clear_selection_btn.setEnabled(bool(selected) and bulk.can_clear_selection)
        self.zip_btn.setText("Zipping…" if bulk.zipping else "Download ZIP")
        self.delete_btn.setText("Deleting…" if bulk.deleting else "Delete")

    def _update_status(self) -> None:
        if self.controller.loading:
            return
        if self.controller.error:
            self.status_label.setText(f"Failed to load files: {self.controller.error}")
            return
        count = self.file_tree.topLevelItemCount()
        if count == 0:
            self.status_label.setText("No files to display")
            return
        text = f"{count} item{'' if count == 1 else 's'}"
        selected = len(self.controller.selection)
        if selected:
            text += f" | {selected} selected"
        self.status_label.setText(text)

    # ---- view -> controller ----
    def entry_for(self, item: Optional[QTreeWidgetItem]) -> Optional[FileEntry]:
        if item is None:
            return None
        data = item.data(0, Qt.ItemDataRole.UserRole)
        return data if isinstance(data, FileEntry) else None

    def on_item_clicked(self, item: QTreeWidgetItem, _column=None) -> None:
        entry = self.entry_for(item)
        if entry is None:
            return
        modifiers = QApplication.keyboardModifiers()
        if modifiers & Qt.KeyboardModifier.ShiftModifier:
            self.controller.extend_selection(self.file_tree.indexOfTopLevelItem(item))
        elif modifiers & Qt.KeyboardModifier.ControlModifier:
            self.controller.toggle_selection(entry)
        else:
            self.controller.activate(entry)

    def on_item_double_clicked(self, item: QTreeWidgetItem, _column=None) -> None:
        entry = self.entry_for(item)
        if entry is not None and entry.is_dir:
            self.controller.open_folder(entry)

    def on_header_clicked(self, column: int) -> None:
        key = COLUMN_SORT_KEYS.get(column)
        if key is None:
            # Restore the indicator Qt moved onto the Type column
            self._populate()
            return
        self.controller.sort_by_column(key)

    def on_location_entered(self) -> None:
        self.controller.navigate_to(self.location_input.text())

    def on_new_folder_clicked(self) -> None:
        name, ok = QInputDialog.getText(self, "New folder", "Folder name:")
        if not ok:
            return
        try:
            self.controller.mkdir(name)
        except PreconditionError as e:
            self._on_operation_failed("mkdir", str(e))

    def on_upload_clicked(self) -> None:
        paths, _ = QFileDialog.getOpenFileNames(self, "Select Files to Upload")
        if paths:
            self.show_upload_panel(paths)

    def show_upload_panel(self, paths: List[str]) -> None:
        try:
            self.upload_panel.set_files(paths)
        except PreconditionError as e:
            self._on_operation_failed("upload", str(e))
            return
        self.upload_panel.show()

    def _on_upload_complete(self) -> None:
        self.upload_panel.hide()
        self._on_operation_succeeded("upload", "Upload complete")
        self.controller.reload()

    def on_zip_clicked(self) -> None:
        if not self.controller.bulk.can_zip(self.controller.selection.entries):
            return
        destination, _ = QFileDialog.getSaveFileName(
            self, "Save ZIP As", self.controller.zip_filename(), "ZIP archives (*.zip)"
        )
        if not destination:
            return
        try:
            self.controller.download_zip(destination)
        except PreconditionError as e:
            self._on_operation_failed("zip", str(e))

    def on_delete_clicked(self) -> None:
        entries = self.controller.selection.entries
        if not self.controller.bulk.can_delete(entries):
            return
        dlg = DeleteConfirmDialog(entries, parent=self)
        if not dlg.exec():
            return
        try:
            self.controller.bulk_delete(dlg.confirmation())
        except PreconditionError as e:
            self._on_operation_failed("bulk_delete", str(e))

    # ---- drag and drop ----
    def dragEnterEvent(self, event) -> None:
        if event.mimeData().hasUrls():
            event.acceptProposedAction()
        else:
            event.ignore()

    def dropEvent(self, event) -> None:
        paths = [u.toLocalFile() for u in event.mimeData().urls() if u.isLocalFile()]
        if paths:
            self.show_upload_panel(paths)
            event.acceptProposedAction()
