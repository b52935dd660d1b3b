import logging
from typing import Any, Callable, List, Tuple

from PySide6.QtCore import QObject, QThread, Signal, Slot

logger = logging.getLogger(__name__)


class _TaskWorker(QObject):
    finished = Signal(object)
    error = Signal(object)

    def __init__(self, fn: Callable[[], Any]):
        super().__init__()
        self._fn = fn

    @Slot()
    def run(self):
        try:
            result = self._fn()
        except Exception as e:  # noqa: BLE001
            logger.debug("Background task raised: %s", e)
            self.error.emit(e)
            return
        self.finished.emit(result)


class _TaskCallbacks(QObject):
    """Lives on the UI thread so the worker's signals are delivered there."""

    def __init__(self, on_success, on_error, parent: QObject):
        super().__init__(parent)
        self._on_success = on_success
        self._on_error = on_error

    @Slot(object)
    def succeeded(self, result):
        self._on_success(result)

    @Slot(object)
    def failed(self, exc):
        self._on_error(exc)


class QtTaskRunner(QObject):
    """Runs each task on its own QThread and reports back on the UI thread."""

    _invoke = Signal(object)

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._tasks: List[Tuple[QThread, _TaskWorker, _TaskCallbacks]] = []
        self._invoke.connect(self._run_invoke)

    @property
    def active_count(self) -> int:
        return len(self._tasks)

    def submit(
        self,
        fn: Callable[[], Any],
        on_success: Callable[[Any], None],
        on_error: Callable[[Exception], None],
    ) -> None:
        thread = QThread(self)
        worker = _TaskWorker(fn)
        callbacks = _TaskCallbacks(on_success, on_error, self)
        worker.moveToThread(thread)

        # Wire signals so callbacks run in the main thread (receiver is a QObject here)
        thread.started.connect(worker.run)
        worker.finished.connect(callbacks.succeeded)
        worker.error.connect(callbacks.failed)
        # Ensure the worker thread exits after finishing or erroring
        worker.finished.connect(thread.quit)
        worker.error.connect(thread.quit)
        # Clean up after thread has fully stopped
        thread.finished.connect(self._cleanup)
        self._tasks.append((thread, worker, callbacks))
        thread.start()

    def call_soon(self, fn: Callable[[], None]) -> None:
        """Run ``fn`` on the UI thread; safe to call from a worker thread."""
        self._invoke.emit(fn)

    @Slot(object)
    def _run_invoke(self, fn):
        fn()

    @Slot()
    def _cleanup(self) -> None:
        thread = self.sender()
        if not isinstance(thread, QThread):
            return
        # finished fires just before the thread exits; wait for it to be done
        thread.wait()
        alive = []
        for t, worker, callbacks in self._tasks:
            if t is thread:
                worker.deleteLater()
                callbacks.deleteLater()
                t.deleteLater()
            else:
                alive.append((t, worker, callbacks))
        self._tasks = alive
