"""Delegation of interactive interrupts to child processes.

While at least one delegating child is alive, the parent's handlers for the
interrupt signals are swapped for one that forwards the signal to those
children instead of raising ``KeyboardInterrupt`` in the parent. The prior
handlers come back when the last delegation is released.

Python only lets the main thread change signal handlers. A delegation
released from another thread leaves the forwarding handler installed; it
restores the saved handlers (and chains to them) the next time it runs, or
when :meth:`InterruptDelegator.settle` is called on the main thread.
"""

from __future__ import annotations

import logging
import os
import signal
import threading
from typing import TYPE_CHECKING, Any

from .platform import INTERRUPT_SIGNALS

if TYPE_CHECKING:
    from collections.abc import Iterable
    from types import FrameType, TracebackType

    from typing_extensions import Self

    from .process import Process

logger = logging.getLogger(__name__)

_Handler = Any  # signal.Handlers | Callable[[int, FrameType | None], Any] | None


def _on_main_thread() -> bool:
    return threading.current_thread() is threading.main_thread()


class Delegation:
    """One child's claim on interrupt delegation, released exactly once."""

    def __init__(self, delegator: InterruptDelegator) -> None:
        self.delegator = delegator
        self.process: Process | None = None
        self.received: int | None = None
        self.released = False

    @property
    def interrupted(self) -> bool:
        return self.received is not None

    def attach(self, process: Process) -> None:
        """Bind the spawned child; an interrupt that arrived during the spawn is passed on now."""
        self.process = process
        if self.received is not None and not self.released:
            process.forward_interrupt(self.received)

    def release(self) -> None:
        self.delegator.release(self)

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()


class InterruptDelegator:
    def __init__(self, signals: Iterable[int] = INTERRUPT_SIGNALS) -> None:
        self.signals = tuple(signals)
        self._lock = threading.RLock()
        self._targets: tuple[Delegation, ...] = ()
        self._saved: dict[int, _Handler] = {}

    @property
    def installed(self) -> bool:
        return bool(self._saved)

    @property
    def active(self) -> int:
        return len(self._targets)

    def acquire(self) -> Delegation:
        token = Delegation(self)
        with self._lock:
            # publish the target first so a signal landing mid-install is forwarded
            self._targets = (*self._targets, token)
            if not self._saved:
                self._install()
        return token

    def release(self, token: Delegation) -> None:
        with self._lock:
            if token.released:
                return
            token.released = True
            self._targets = tuple(t for t in self._targets if t is not token)
            if not self._targets:
                self.settle()

    def settle(self) -> None:
        """Restore the saved handlers if nothing is delegating any more."""
        with self._lock:
            if self._targets or not self._saved:
                return
            if not _on_main_thread():
                logger.debug("deferring interrupt handler restore to the main thread")
                return
            self._restore()

    def _install(self) -> None:
        if not _on_main_thread():
            logger.debug(
                "interrupt delegation requested off the main thread, "
                "parent handlers left in place"
            )
            return
        for sig in self.signals:
            self._saved[sig] = signal.signal(sig, self._handle)
        logger.debug("interrupt delegation installed for %s", self._names())

    def _restore(self) -> dict[int, _Handler]:
        saved, self._saved = self._saved, {}
        for sig, handler in saved.items():
            signal.signal(sig, handler if handler is not None else signal.SIG_DFL)
        logger.debug("interrupt handlers restored for %s", self._names(saved))
        return saved

    def _names(self, sigs: Iterable[int] | None = None) -> str:
        return ", ".join(
            signal.Signals(s).name for s in (self.signals if sigs is None else sigs)
        )

    def _handle(self, signum: int, frame: FrameType | None) -> None:
        # always runs on the main thread, possibly inside acquire()
        targets = self._targets
        if targets:
            for token in targets:
                token.received = signum
                if token.process is not None:
                    token.process.forward_interrupt(signum)
            return

        with self._lock:
            previous = self._restore().get(signum, signal.SIG_DFL)
        if callable(previous):
            previous(signum, frame)
        elif previous == signal.SIG_DFL:
            os.kill(os.getpid(), signum)


delegator = InterruptDelegator()
