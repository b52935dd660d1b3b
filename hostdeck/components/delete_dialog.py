from typing import Sequence

from PySide6.QtWidgets import (
    QDialog,
    QDialogButtonBox,
    QLabel,
    QLineEdit,
    QListWidget,
    QPushButton,
    QVBoxLayout,
)

from hostdeck.models.bulk_actions import confirmation_matches, required_confirmation
from hostdeck.models.entries import FileEntry

# Rows listed before collapsing into "and N more"
PREVIEW_LIMIT = 10


class DeleteConfirmDialog(QDialog):
    """Typed confirmation before deleting one or more entries."""

    def __init__(self, entries: Sequence[FileEntry], parent=None) -> None:
        super().__init__(parent)
        self.entries = list(entries)
        self.bulk = len(self.entries) > 1
        self.setWindowTitle("Delete items" if self.bulk else "Delete")
        self.setModal(True)

        expected = required_confirmation(self.entries)
        layout = QVBoxLayout(self)
        if self.bulk:
            message = f"Delete {len(self.entries)} items? This cannot be undone."
        else:
            kind = "folder" if self.entries and self.entries[0].is_dir else "file"
            message = f"Delete this {kind}? This cannot be undone."
        self.message_label = QLabel(message)
        layout.addWidget(self.message_label)

        self.preview = QListWidget()
        for entry in self.entries[:PREVIEW_LIMIT]:
            self.preview.addItem(entry.path)
        if len(self.entries) > PREVIEW_LIMIT:
            self.preview.addItem(f"... and {len(self.entries) - PREVIEW_LIMIT} more")
        layout.addWidget(self.preview)

        layout.addWidget(QLabel(f"Type {expected} to confirm:"))
        self.confirm_input = QLineEdit()
        self.confirm_input.setPlaceholderText(expected)
        layout.addWidget(self.confirm_input)

        buttons = QDialogButtonBox(QDialogButtonBox.StandardButton.Cancel)
        self.delete_btn = QPushButton("Delete")
        self.delete_btn.setEnabled(False)
        buttons.addButton(self.delete_btn, QDialogButtonBox.ButtonRole.AcceptRole)
        buttons.rejected.connect(self.reject)
        self.delete_btn.clicked.connect(self.accept)
        layout.addWidget(buttons)

        self.confirm_input.textChanged.connect(self._on_text_changed)

    def _on_text_changed(self, text: str) -> None:
        if self.bulk and text != text.upper():
            # Keep the typed keyword upper-case as the user types
            pos = self.confirm_input.cursorPosition()
            self.confirm_input.setText(text.upper())
            self.confirm_input.setCursorPosition(pos)
            return
        self.delete_btn.setEnabled(self.is_confirmed())

    def confirmation(self) -> str:
        return self.confirm_input.text()

    def is_confirmed(self) -> bool:
        return confirmation_matches(self.entries, self.confirmation())
