from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .status import ExitStatus


class ProctorError(Exception):
    pass


class ConfigError(ProctorError):
    def __init__(self, key: str, message: str) -> None:
        self.key = key
        self.message = message
        super().__init__(f"Unable to parse config key {key!r}: {message}")


class SpawnError(ProctorError):
    """The child process could not be created."""


class ExecutableNotFound(SpawnError):
    def __init__(self, command: str) -> None:
        self.command = command
        super().__init__(f"{command}: executable not found")


class OSFailure(SpawnError):
    def __init__(self, errno: int | None, strerror: str) -> None:
        self.errno = errno
        self.strerror = strerror
        super().__init__(f"spawn failed: [Errno {errno}] {strerror}")


class WaitError(ProctorError):
    """The OS refused to report the status of a child it created."""


class ProcessFailed(ProctorError):
    def __init__(
        self, argv: Sequence[str], status: ExitStatus, output: str | bytes = ""
    ) -> None:
        self.argv = list(argv)
        self.status = status
        self.output = output
        super().__init__(f"{self.argv[0]} (exit {status.returncode}): failed")
