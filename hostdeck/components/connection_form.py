import base64
import binascii
import json
import logging
import os
from PySide6.QtWidgets import (
    QWidget,
    QFormLayout,
    QLineEdit,
    QPushButton,
    QLabel,
)
from typing import Callable, Dict, Any

logger = logging.getLogger(__name__)

# Saved connection; tests redirect this
CONNECTION_PATH = ".hostdeck/connection.json"


class ConnectionForm(QWidget):
    """Server address and access credentials; hands the result to `callback`."""

    def __init__(
        self, callback: Callable[[Dict[str, str]], None], auto_connect: bool = True
    ) -> None:
        super().__init__()
        self.callback = callback
        self.init_ui()
        self.load_config()
        if auto_connect:
            self.try_auto_connect_on_startup()

    def init_ui(self) -> None:
        self.base_url_input = QLineEdit()
        self.base_url_input.setPlaceholderText("https://files.example.com")
        self.client_id_input = QLineEdit()
        self.client_secret_input = QLineEdit()
        self.client_secret_input.setEchoMode(QLineEdit.EchoMode.Password)
        self.connect_btn = QPushButton("Connect")
        self.error_label = QLabel("")
        self.error_label.setStyleSheet("color: #c33;")

        layout = QFormLayout()
        layout.addRow("Server URL", self.base_url_input)
        layout.addRow("Access client ID", self.client_id_input)
        layout.addRow("Access client secret", self.client_secret_input)
        layout.addWidget(self.error_label)
        layout.addWidget(self.connect_btn)

        self.connect_btn.clicked.connect(self.on_connect)
        self.base_url_input.returnPressed.connect(self.on_connect)
        self.setLayout(layout)

    # ---- persistence helpers ----
    def _enc(self, s: str) -> str:
        if not s:
            return ""
        return "b64:" + base64.b64encode(s.encode("utf-8")).decode("ascii")

    def _dec(self, s: str) -> str:
        if not s:
            return ""
        if s.startswith("b64:"):
            try:
                return base64.b64decode(s[4:].encode("ascii")).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError):
                return ""
        return s

    def _read_connection(self) -> Dict[str, Any]:
        try:
            if os.path.exists(CONNECTION_PATH):
                with open(CONNECTION_PATH, "r") as f:
                    data = json.load(f)
                    if isinstance(data, dict):
                        return data
        except (OSError, ValueError):
            logger.warning("Could not read %s", CONNECTION_PATH, exc_info=True)
        return {"base_url": "", "access_client_id": "", "access_client_secret": ""}

    def _write_connection(self, data: Dict[str, Any]) -> None:
        try:
            os.makedirs(os.path.dirname(CONNECTION_PATH) or ".", exist_ok=True)
            with open(CONNECTION_PATH, "w") as f:
                json.dump(data, f)
        except OSError:
            logger.exception("Failed to save connection settings")

    def load_config(self) -> None:
        data = self._read_connection()
        # Environment wins over the saved URL
        base_url = os.getenv("HOSTDECK_BASE_URL") or data.get("base_url", "")
        self.base_url_input.setText(str(base_url or ""))
        self.client_id_input.setText(str(data.get("access_client_id", "") or ""))
        self.client_secret_input.setText(self._dec(str(data.get("access_client_secret", "") or "")))

    def save_config(self, info: Dict[str, str]) -> None:
        self._write_connection(
            {
                "base_url": info.get("base_url", ""),
                "access_client_id": info.get("access_client_id", ""),
                "access_client_secret": self._enc(info.get("access_client_secret", "")),
            }
        )

    def connection_info(self) -> Dict[str, str]:
        return {
            "base_url": self.base_url_input.text().strip().rstrip("/"),
            "access_client_id": self.client_id_input.text().strip(),
            "access_client_secret": self.client_secret_input.text(),
        }

    def on_connect(self) -> None:
        info = self.connection_info()
        if not info["base_url"]:
            self.error_label.setText("Server URL is required")
            return
        self.error_label.setText("")
        self.save_config(info)
        self.callback(info)

    # ---- startup helpers ----
    def try_auto_connect_on_startup(self) -> bool:
        """Connect right away when a server URL is already known.

        Returns True if a connection attempt was triggered.
        """
        if not (self.base_url_input.text() or "").strip():
            return False
        self.on_connect()
        return True
