from __future__ import annotations

import logging
import os
import signal
from typing import TYPE_CHECKING, Any

from proctor.compat import HAS_PROCESS_GROUP
from proctor.errors import WaitError

if TYPE_CHECKING:
    import subprocess

    from proctor.config import ProcessConfig

logger = logging.getLogger(__name__)

INTERRUPT_SIGNALS = (signal.SIGINT, signal.SIGQUIT)
INTERRUPT_RETURNCODE = -signal.SIGINT

# waitid(WNOWAIT) lets us block without reaping, so the pid stays reserved
# until the exit status is collected under the handle lock
_HAS_WAITID = hasattr(os, "waitid") and hasattr(os, "WNOWAIT")


class PosixChild:
    def __init__(self, popen: subprocess.Popen[bytes], *, own_group: bool) -> None:
        self._popen = popen
        self.pid = popen.pid
        self.own_group = own_group
        self._returncode: int | None = None

    def wait_for_exit(self) -> None:
        if not _HAS_WAITID:
            self._returncode = self._waitpid(0)
            return
        try:
            os.waitid(os.P_PID, self.pid, os.WEXITED | os.WNOWAIT)
        except ChildProcessError as e:
            msg = f"cannot wait for pid {self.pid}: {e.strerror}"
            raise WaitError(msg) from e

    def try_reap(self) -> int | None:
        if self._returncode is not None:
            return self._returncode
        self._returncode = self._waitpid(os.WNOHANG)
        return self._returncode

    def _waitpid(self, options: int) -> int | None:
        try:
            pid, sts = os.waitpid(self.pid, options)
        except ChildProcessError as e:
            msg = f"cannot reap pid {self.pid}: {e.strerror}"
            raise WaitError(msg) from e
        if pid == 0:
            return None
        returncode = os.waitstatus_to_exitcode(sts)
        # keeps Popen.__del__ from queueing a second reap of the same pid
        self._popen.returncode = returncode
        return returncode

    def send_signal(self, sig: int) -> None:
        try:
            os.kill(self.pid, sig)
        except ProcessLookupError:
            logger.debug("pid %d already gone, dropping signal %d", self.pid, sig)

    def terminate(self) -> None:
        self.send_signal(signal.SIGTERM)

    def kill(self) -> None:
        self.send_signal(signal.SIGKILL)

    def interrupt_group(self) -> None:
        try:
            os.killpg(os.getpgid(self.pid), signal.SIGINT)
        except ProcessLookupError:
            logger.debug("pid %d already gone, dropping group interrupt", self.pid)

    def forward_interrupt(self, sig: int) -> None:
        # children in our group already got the terminal's signal
        if not self.own_group:
            return
        try:
            os.killpg(self.pid, sig)
        except ProcessLookupError:
            logger.debug("group %d already gone, dropping signal %d", self.pid, sig)


def popen_options(config: ProcessConfig) -> dict[str, Any]:
    kwargs: dict[str, Any] = {
        "close_fds": config.close_fds,
        "start_new_session": config.new_session,
    }

    if config.inherit_handles:
        # Popen always closes unlisted descriptors when pass_fds is given
        kwargs["close_fds"] = True
        kwargs["pass_fds"] = tuple(config.inherit_handles)

    # setsid already makes the child a group leader
    if config.create_group and not config.new_session:
        if HAS_PROCESS_GROUP:
            kwargs["process_group"] = 0
        else:
            kwargs["preexec_fn"] = os.setpgrp

    if config.child_user is not None:
        kwargs["user"] = config.child_user
    if config.child_group is not None:
        kwargs["group"] = config.child_group

    return kwargs


def create_pipe() -> tuple[int, int]:
    return os.pipe()


def export_handle(fd: int) -> int:
    return fd


def import_handle(value: int, *, writable: bool) -> int:
    return value
