from typing import Any, Callable, Protocol


class TaskRunner(Protocol):
    """Where remote calls run and where their results are delivered.

    ``fn`` may run on another thread; ``on_success``/``on_error`` and anything
    passed to ``call_soon`` always run on the UI thread.
    """

    def submit(
        self,
        fn: Callable[[], Any],
        on_success: Callable[[Any], None],
        on_error: Callable[[Exception], None],
    ) -> None: ...

    def call_soon(self, fn: Callable[[], None]) -> None: ...


class InlineRunner:
    """Runs tasks synchronously on the calling thread (CLI and tests)."""

    def submit(
        self,
        fn: Callable[[], Any],
        on_success: Callable[[Any], None],
        on_error: Callable[[Exception], None],
    ) -> None:
        try:
            result = fn()
        except Exception as e:  # noqa: BLE001
            on_error(e)
            return
        on_success(result)

    def call_soon(self, fn: Callable[[], None]) -> None:
        fn()
