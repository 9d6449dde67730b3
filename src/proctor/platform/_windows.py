from __future__ import annotations

import logging
import os
import signal
import subprocess
from typing import TYPE_CHECKING, Any

if os.name == "nt":
    import msvcrt
else:
    msg = f"{os.name} is not supported"
    raise ImportError(msg) from None

if TYPE_CHECKING:
    from proctor.config import ProcessConfig

logger = logging.getLogger(__name__)

INTERRUPT_SIGNALS = (signal.SIGINT, signal.SIGBREAK)
# STATUS_CONTROL_C_EXIT
INTERRUPT_RETURNCODE = 0xC000013A


class WindowsChild:
    def __init__(self, popen: subprocess.Popen[bytes], *, own_group: bool) -> None:
        self._popen = popen
        self.pid = popen.pid
        self.own_group = own_group

    def wait_for_exit(self) -> None:
        # WaitForSingleObject on the process handle; the handle stays open
        self._popen.wait()

    def try_reap(self) -> int | None:
        return self._popen.poll()

    def send_signal(self, sig: int) -> None:
        self._popen.send_signal(sig)

    def terminate(self) -> None:
        self._popen.terminate()

    def kill(self) -> None:
        self._popen.kill()

    def interrupt_group(self) -> None:
        os.kill(self.pid, signal.CTRL_BREAK_EVENT)

    def forward_interrupt(self, sig: int) -> None:
        # children sharing our console receive the console event directly
        if self.own_group:
            os.kill(self.pid, signal.CTRL_BREAK_EVENT)


def popen_options(config: ProcessConfig) -> dict[str, Any]:
    flags = 0
    if config.create_group or config.new_session:
        flags |= subprocess.CREATE_NEW_PROCESS_GROUP
    if config.create_new_console:
        if config.detach_console:
            logger.warning(
                "create_new_console and detach_console are exclusive, "
                "ignoring detach_console"
            )
        flags |= subprocess.CREATE_NEW_CONSOLE
    elif config.detach_console:
        flags |= subprocess.DETACHED_PROCESS

    kwargs: dict[str, Any] = {"creationflags": flags, "close_fds": config.close_fds}

    if config.inherit_handles:
        for handle in config.inherit_handles:
            os.set_handle_inheritable(handle, True)
        if config.close_fds:
            kwargs["startupinfo"] = subprocess.STARTUPINFO(
                lpAttributeList={"handle_list": list(config.inherit_handles)}
            )

    return kwargs


def create_pipe() -> tuple[int, int]:
    return os.pipe()


def export_handle(fd: int) -> int:
    return msvcrt.get_osfhandle(fd)


def import_handle(value: int, *, writable: bool) -> int:
    return msvcrt.open_osfhandle(value, os.O_WRONLY if writable else os.O_RDONLY)
