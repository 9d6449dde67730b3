"""Handle to a spawned child and the logic that reaps it exactly once.

A child moves through three states::

    RUNNING --(poll sees exit)------------------> EXITED
    RUNNING --(wait/detach)--> REAPING --(exit)--> EXITED

Only ``REAPING`` involves a blocking OS call, and it runs on a dedicated
daemon thread. Callers of :meth:`Process.wait` just sleep on a condition
until the status is published, so a waiter that is interrupted (for
example by ``KeyboardInterrupt``) leaves the reap running in the
background, and any number of threads may wait concurrently.

The status itself is only ever collected while the handle lock is held,
which is also the lock signals are sent under. On POSIX the reaper blocks
with ``waitid(WNOWAIT)``, leaving the zombie in place until then, so a
signal can never hit a recycled pid.
"""

from __future__ import annotations

import enum
import logging
import threading
from typing import TYPE_CHECKING

from .errors import WaitError
from .platform import INTERRUPT_RETURNCODE
from .status import ExitStatus, Interrupted, exit_status

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .interrupt import Delegation
    from .platform import ChildProcess

logger = logging.getLogger(__name__)


class _State(enum.Enum):
    RUNNING = "running"
    REAPING = "reaping"
    EXITED = "exited"


class Process:
    def __init__(
        self,
        child: ChildProcess,
        argv: Sequence[str],
        *,
        delegate_interrupt: bool = False,
        delegation: Delegation | None = None,
    ) -> None:
        self.argv = list(argv)
        self.delegate_interrupt = delegate_interrupt
        self._child = child
        self._delegation = delegation
        # reentrant: the interrupt handler forwards under it on the main thread
        self._cond = threading.Condition(threading.RLock())
        self._state = _State.RUNNING
        self._status: ExitStatus | None = None
        self._error: WaitError | None = None

    def __repr__(self) -> str:
        return f"<Process pid={self._child.pid} argv={self.argv!r} {self._state.value}>"

    @property
    def pid(self) -> int | None:
        return self.get_pid()

    def get_pid(self) -> int | None:
        """The OS process id, or ``None`` once the child has been reaped."""
        with self._cond:
            if self._state is _State.EXITED:
                return None
            return self._child.pid

    def wait(self) -> ExitStatus:
        """Block until the child exits. Safe to call repeatedly and from many threads."""
        with self._cond:
            self._start_reaper()
            while self._state is not _State.EXITED:
                self._cond.wait()
            status = self._result()
        # the reaper may not have released it yet
        self.release_delegation()
        if self._delegation is not None:
            self._delegation.delegator.settle()
        return status

    def poll(self) -> ExitStatus | None:
        """Return the exit status if known, without blocking.

        While a reap is in progress the reaper owns the OS call and this
        returns ``None`` until it publishes.
        """
        with self._cond:
            if self._state is _State.EXITED:
                return self._result()
            if self._state is _State.REAPING:
                return None
            try:
                returncode = self._child.try_reap()
            except WaitError as e:
                self._fail(e)
            else:
                if returncode is None:
                    return None
                self._publish(returncode)
        # released outside the handle lock, which the interrupt handler takes
        self.release_delegation()
        with self._cond:
            return self._result()

    def detach(self) -> None:
        """Reap the child in the background once it exits; nobody needs to wait."""
        with self._cond:
            self._start_reaper()

    def send_signal(self, sig: int) -> None:
        with self._cond:
            if self._state is not _State.EXITED:
                self._child.send_signal(sig)

    def terminate(self) -> None:
        with self._cond:
            if self._state is not _State.EXITED:
                self._child.terminate()

    def kill(self) -> None:
        with self._cond:
            if self._state is not _State.EXITED:
                self._child.kill()

    def interrupt_group(self) -> None:
        """Send an interrupt to the child's whole process group."""
        with self._cond:
            if self._state is not _State.EXITED:
                self._child.interrupt_group()

    def forward_interrupt(self, sig: int) -> None:
        """Pass an interrupt the parent received on to the child, unless it is already reaped."""
        with self._cond:
            if self._state is not _State.EXITED:
                self._child.forward_interrupt(sig)

    def release_delegation(self) -> None:
        if self._delegation is not None:
            self._delegation.release()

    def _start_reaper(self) -> None:
        if self._state is not _State.RUNNING:
            return
        self._state = _State.REAPING
        threading.Thread(
            target=self._reap, name=f"reap-{self._child.pid}", daemon=True
        ).start()

    def _reap(self) -> None:
        try:
            while True:
                self._child.wait_for_exit()
                with self._cond:
                    returncode = self._child.try_reap()
                    if returncode is not None:
                        self._publish(returncode)
                        break
        except WaitError as e:
            with self._cond:
                self._fail(e)
        except Exception as e:
            with self._cond:
                self._fail(WaitError(f"waiting for pid {self._child.pid} failed: {e}"))
            logger.exception("reaper for pid %d crashed", self._child.pid)
        self.release_delegation()

    def _classify(self, returncode: int) -> ExitStatus:
        if self.delegate_interrupt:
            if returncode == INTERRUPT_RETURNCODE:
                return Interrupted()
            # a child that traps the interrupt and exits non-zero (shells exit 130)
            interrupted = self._delegation is not None and self._delegation.interrupted
            if interrupted and returncode != 0:
                return Interrupted()
        return exit_status(returncode)

    def _publish(self, returncode: int) -> None:
        self._status = self._classify(returncode)
        self._state = _State.EXITED
        self._cond.notify_all()
        logger.debug("pid %d %s", self._child.pid, self._status)

    def _fail(self, error: WaitError) -> None:
        self._error = error
        self._state = _State.EXITED
        self._cond.notify_all()

    def _result(self) -> ExitStatus:
        if self._error is not None:
            raise WaitError(str(self._error)) from self._error
        assert self._status is not None
        return self._status
