from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable

T = TypeVar("T")


class BackgroundTask(Generic[T]):
    """Run ``target`` on a daemon thread and hand its outcome to whoever joins it.

    Exceptions raised by ``target`` are re-raised from :meth:`join` in the
    joining thread rather than reaching ``threading.excepthook``.
    """

    def __init__(self, target: Callable[[], T], *, name: str | None = None) -> None:
        self._target = target
        self._result: T | None = None
        self._error: BaseException | None = None
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self) -> BackgroundTask[T]:
        self._thread.start()
        return self

    def _run(self) -> None:
        try:
            self._result = self._target()
        except BaseException as e:  # noqa: BLE001
            self._error = e

    def done(self) -> bool:
        return not self._thread.is_alive()

    def join(self, timeout: float | None = None) -> T:
        self._thread.join(timeout)
        if self._thread.is_alive():
            msg = f"{self._thread.name} did not finish within {timeout}s"
            raise TimeoutError(msg)
        if self._error is not None:
            raise self._error
        return self._result  # type: ignore[return-value]


def start_task(target: Callable[[], T], *, name: str | None = None) -> BackgroundTask[T]:
    return BackgroundTask(target, name=name).start()
