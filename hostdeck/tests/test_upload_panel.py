from hostdeck.components.upload_panel import UploadPanel
from hostdeck.models.upload_queue import UploadStatus
from hostdeck.services.api.client import FileHostConflictError
from hostdeck.tests.fakes import DeferredRunner, DummyClient, drop_event


def _files(tmp_path, *names):
    paths = []
    for n in names:
        p = tmp_path / n
        p.write_bytes(b"x" * 2048)
        paths.append(str(p))
    return paths


def test_rows_and_buttons(qtbot, tmp_path, inline_runner):
    panel = UploadPanel(DummyClient(), inline_runner, lambda: "/docs")
    qtbot.addWidget(panel)
    assert not panel.upload_btn.isEnabled()

    panel.set_files(_files(tmp_path, "A.txt", "B.txt"))

    assert panel.file_tree.topLevelItemCount() == 2
    row = panel.file_tree.topLevelItem(0)
    assert row.text(0) == "A.txt"
    assert row.text(1) == "2.0 KB"
    assert row.text(2) == "Pending"
    assert panel.upload_btn.isEnabled()
    assert panel.target_label.text() == "Upload to: /docs"


def test_successful_run_emits_complete(qtbot, tmp_path, inline_runner):
    client = DummyClient()
    panel = UploadPanel(client, inline_runner, lambda: "/docs")
    qtbot.addWidget(panel)
    panel.set_files(_files(tmp_path, "A.txt", "B.txt"))
    panel.overwrite_check.setChecked(True)

    with qtbot.waitSignal(panel.upload_complete, timeout=1000):
        assert panel.on_upload_clicked()

    assert [c for c in client.calls if c[0] == "upload"] == [("upload", "A.txt"), ("upload", "B.txt")]
    assert panel.file_tree.topLevelItemCount() == 0


def test_failed_item_stays_visible(qtbot, tmp_path, inline_runner):
    client = DummyClient()
    client.fail["upload:B.txt"] = FileHostConflictError("File already exists", 409)
    panel = UploadPanel(client, inline_runner, lambda: "/")
    qtbot.addWidget(panel)
    completed = []
    panel.upload_complete.connect(lambda: completed.append(True))
    panel.set_files(_files(tmp_path, "A.txt", "B.txt"))

    panel.on_upload_clicked()

    assert completed == []
    assert panel.file_tree.topLevelItemCount() == 2
    assert panel.file_tree.topLevelItem(0).text(2) == "Done"
    assert panel.file_tree.topLevelItem(1).text(2) == "Error: File already exists"
    assert panel.status_label.text() == "Some files failed to upload"
    assert not panel.upload_btn.isEnabled()


def test_controls_locked_while_running(qtbot, tmp_path):
    runner = DeferredRunner()
    panel = UploadPanel(DummyClient(), runner, lambda: "/")
    qtbot.addWidget(panel)
    panel.set_files(_files(tmp_path, "A.txt"))

    panel.on_upload_clicked()

    assert panel.queue.get("A.txt").status is UploadStatus.UPLOADING
    assert not panel.add_btn.isEnabled()
    assert not panel.cancel_btn.isEnabled()
    assert not panel.upload_btn.isEnabled()

    panel.on_cancel_clicked()
    assert len(panel.queue) == 1

    runner.run()
    assert len(panel.queue) == 0
    assert panel.add_btn.isEnabled()


def _failed_run(qtbot, tmp_path, runner):
    client = DummyClient()
    client.fail["upload:B.txt"] = FileHostConflictError("exists", 409)
    panel = UploadPanel(client, runner, lambda: "/")
    qtbot.addWidget(panel)
    panel.set_files(_files(tmp_path, "A.txt", "B.txt"))
    panel.on_upload_clicked()
    return panel


def rows(panel):
    tree = panel.file_tree
    return [(tree.topLevelItem(i).text(0), tree.topLevelItem(i).text(2)) for i in range(tree.topLevelItemCount())]


def test_drop_replaces_previous_results(qtbot, tmp_path, inline_runner):
    panel = _failed_run(qtbot, tmp_path, inline_runner)
    assert rows(panel) == [("A.txt", "Done"), ("B.txt", "Error: exists")]

    event, _mime = drop_event(_files(tmp_path, "C.txt"))
    panel.dropEvent(event)

    assert [(i.name, i.status, i.error) for i in panel.queue.items] == [
        ("C.txt", UploadStatus.PENDING, None)
    ]
    assert rows(panel) == [("C.txt", "Pending")]
    assert panel.status_label.text() == ""
    assert panel.upload_btn.isEnabled()


def test_add_files_replaces_previous_results(monkeypatch, qtbot, tmp_path, inline_runner):
    panel = _failed_run(qtbot, tmp_path, inline_runner)
    picked = _files(tmp_path, "B.txt")
    monkeypatch.setattr(
        "hostdeck.components.upload_panel.QFileDialog.getOpenFileNames",
        lambda *a, **k: (picked, ""),
    )

    panel.on_add_clicked()

    assert rows(panel) == [("B.txt", "Pending")]
    assert panel.queue.get("B.txt").progress == 0


def test_drop_refused_while_running(qtbot, tmp_path):
    runner = DeferredRunner()
    panel = UploadPanel(DummyClient(), runner, lambda: "/")
    qtbot.addWidget(panel)
    panel.set_files(_files(tmp_path, "A.txt"))
    panel.on_upload_clicked()

    event, _mime = drop_event(_files(tmp_path, "C.txt"))
    panel.dropEvent(event)

    assert [i.name for i in panel.queue.items] == ["A.txt"]
    assert "while an upload is running" in panel.status_label.text()
    runner.run()
