import logging
import os
from typing import Dict, Optional

from PySide6.QtWidgets import (
    QApplication,
    QDialog,
    QDialogButtonBox,
    QMainWindow,
    QVBoxLayout,
)
from PySide6.QtGui import QAction, QFont

from hostdeck.components.connection_form import ConnectionForm
from hostdeck.components.file_browser import FileBrowser
from hostdeck.controllers.directory_controller import DirectoryController
from hostdeck.services.api.client import FileHostClient
from hostdeck.services.qt_tasks import QtTaskRunner

logging.basicConfig(
    level=getattr(logging, os.getenv("HOSTDECK_LOG_LEVEL", "ERROR").upper(), logging.ERROR),
    format="%(asctime)s | %(filename)s:%(lineno)s \t [%(levelname)s] %(message)s",
)
logger = logging.getLogger(__name__)


class MainWindow(QMainWindow):
    def __init__(self) -> None:
        super().__init__()
        self.setWindowTitle("HostDeck")
        self.resize(1100, 700)
        self.runner = QtTaskRunner(self)
        self.controller: Optional[DirectoryController] = None
        self._connection: Dict[str, str] = {}

        settings_action = QAction("Connection…", self)
        settings_action.triggered.connect(lambda: self.open_connection_dialog(auto_connect=False))
        self.menuBar().addAction(settings_action)

        self.open_connection_dialog(auto_connect=True)

    def open_connection_dialog(self, auto_connect: bool) -> None:
        dlg = QDialog(self)
        dlg.setWindowTitle("Connection Settings")
        v = QVBoxLayout(dlg)

        def on_connected(info: Dict[str, str]) -> None:
            try:
                # Same server and credentials: keep the current view
                if self.controller is not None and info == self._connection:
                    return
                self.connect_to(info)
            finally:
                dlg.accept()

        form = ConnectionForm(callback=on_connected, auto_connect=auto_connect)
        if dlg.result() == QDialog.DialogCode.Accepted:
            # Auto-connect already happened inside the form
            return
        v.addWidget(form)
        buttons = QDialogButtonBox(QDialogButtonBox.StandardButton.Close)
        buttons.rejected.connect(dlg.reject)
        v.addWidget(buttons)
        dlg.setModal(True)
        dlg.resize(520, 220)
        dlg.exec()

    def connect_to(self, info: Dict[str, str]) -> None:
        logger.info("Connecting to %s", info.get("base_url"))
        client = FileHostClient(
            info["base_url"],
            access_client_id=info.get("access_client_id", ""),
            access_client_secret=info.get("access_client_secret", ""),
        )
        self._connection = dict(info)
        self.controller = DirectoryController(client, self.runner, parent=self)
        self.setCentralWidget(FileBrowser(self.controller))
        self.setWindowTitle(f"HostDeck - {info['base_url']}")
        self.controller.start()


if __name__ == "__main__":
    app = QApplication([])
    font = QFont()
    font.setPixelSize(13)
    app.setFont(font)
    window = MainWindow()
    window.show()
    app.exec()
