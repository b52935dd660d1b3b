import base64
import json
from typing import Dict
from hostdeck.components.connection_form import ConnectionForm


def test_connection_form_load_config(monkeypatch, qtbot, tmp_path):
    conn = tmp_path / "connection.json"
    monkeypatch.setattr("hostdeck.components.connection_form.CONNECTION_PATH", str(conn))
    monkeypatch.delenv("HOSTDECK_BASE_URL", raising=False)
    secret = "b64:" + base64.b64encode(b"s3cret").decode("ascii")
    conn.write_text(
        json.dumps(
            {
                "base_url": "https://files.example.com",
                "access_client_id": "id",
                "access_client_secret": secret,
            }
        )
    )

    form = ConnectionForm(lambda info: None, auto_connect=False)
    qtbot.addWidget(form)

    assert form.base_url_input.text() == "https://files.example.com"
    assert form.client_id_input.text() == "id"
    assert form.client_secret_input.text() == "s3cret"


def test_connection_form_on_connect_and_save(monkeypatch, qtbot, tmp_path):
    conn = tmp_path / "nested" / "connection.json"
    monkeypatch.setattr("hostdeck.components.connection_form.CONNECTION_PATH", str(conn))
    monkeypatch.delenv("HOSTDECK_BASE_URL", raising=False)

    captured: Dict[str, str] = {}
    form = ConnectionForm(lambda info: captured.update(info))
    qtbot.addWidget(form)

    form.base_url_input.setText("https://files.example.com/")
    form.client_id_input.setText("id")
    form.client_secret_input.setText("pw")
    form.on_connect()

    assert captured == {
        "base_url": "https://files.example.com",
        "access_client_id": "id",
        "access_client_secret": "pw",
    }
    written = json.loads(conn.read_text())
    assert written["base_url"] == "https://files.example.com"
    # Secret is stored with a base64 marker and decodes back to the original
    assert written["access_client_secret"].startswith("b64:")
    assert base64.b64decode(written["access_client_secret"][4:]).decode("utf-8") == "pw"


def test_connection_form_requires_url(monkeypatch, qtbot, tmp_path):
    monkeypatch.setattr(
        "hostdeck.components.connection_form.CONNECTION_PATH", str(tmp_path / "c.json")
    )
    monkeypatch.delenv("HOSTDECK_BASE_URL", raising=False)
    called = []
    form = ConnectionForm(called.append)
    qtbot.addWidget(form)

    form.on_connect()

    assert called == []
    assert form.error_label.text() == "Server URL is required"
    assert not (tmp_path / "c.json").exists()


def test_auto_connect_on_startup(monkeypatch, qtbot, tmp_path):
    conn = tmp_path / "connection.json"
    monkeypatch.setattr("hostdeck.components.connection_form.CONNECTION_PATH", str(conn))
    monkeypatch.delenv("HOSTDECK_BASE_URL", raising=False)
    conn.write_text(json.dumps({"base_url": "https://saved.example.com"}))

    called = []
    form = ConnectionForm(called.append)
    qtbot.addWidget(form)

    assert [c["base_url"] for c in called] == ["https://saved.example.com"]


def test_env_base_url_overrides_saved(monkeypatch, qtbot, tmp_path):
    conn = tmp_path / "connection.json"
    monkeypatch.setattr("hostdeck.components.connection_form.CONNECTION_PATH", str(conn))
    conn.write_text(json.dumps({"base_url": "https://saved.example.com"}))
    monkeypatch.setenv("HOSTDECK_BASE_URL", "https://env.example.com")

    form = ConnectionForm(lambda info: None, auto_connect=False)
    qtbot.addWidget(form)

    assert form.base_url_input.text() == "https://env.example.com"
    assert form.try_auto_connect_on_startup()


def test_corrupt_file_falls_back_to_empty(monkeypatch, qtbot, tmp_path):
    conn = tmp_path / "connection.json"
    conn.write_text("{not json")
    monkeypatch.setattr("hostdeck.components.connection_form.CONNECTION_PATH", str(conn))
    monkeypatch.delenv("HOSTDECK_BASE_URL", raising=False)

    form = ConnectionForm(lambda info: None)
    qtbot.addWidget(form)

    assert form.base_url_input.text() == ""
    assert not form.try_auto_connect_on_startup()
