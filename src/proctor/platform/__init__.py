from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any, Protocol

if os.name == "nt":
    from ._windows import (
        INTERRUPT_RETURNCODE,
        INTERRUPT_SIGNALS,
        WindowsChild as _Child,
        create_pipe,
        export_handle,
        import_handle,
        popen_options,
    )
else:
    from ._posix import (
        INTERRUPT_RETURNCODE,
        INTERRUPT_SIGNALS,
        PosixChild as _Child,
        create_pipe,
        export_handle,
        import_handle,
        popen_options,
    )


__all__ = [
    "INTERRUPT_RETURNCODE",
    "INTERRUPT_SIGNALS",
    "ChildProcess",
    "create_pipe",
    "export_handle",
    "import_handle",
    "popen_options",
    "wrap_child",
]


class ChildProcess(Protocol):
    """OS-level view of one child, driven exclusively by :class:`proctor.process.Process`."""

    pid: int

    def wait_for_exit(self) -> None:
        """Block until the child has exited, without reaping it where the OS allows."""

    def try_reap(self) -> int | None:
        """Collect the exit code if the child has exited. Never blocks."""

    def send_signal(self, sig: int) -> None: ...
    def terminate(self) -> None: ...
    def kill(self) -> None: ...
    def interrupt_group(self) -> None: ...
    def forward_interrupt(self, sig: int) -> None: ...


if TYPE_CHECKING:
    import subprocess

    from proctor.config import ProcessConfig

    def wrap_child(
        popen: subprocess.Popen[bytes], config: ProcessConfig
    ) -> ChildProcess: ...
else:

    def wrap_child(popen: Any, config: Any) -> ChildProcess:
        return _Child(popen, own_group=config.create_group or config.new_session)
