from __future__ import annotations

import signal
from dataclasses import dataclass
from typing import ClassVar, Union

from typing_extensions import TypeAlias


@dataclass(frozen=True)
class ExitSuccess:
    returncode: ClassVar[int] = 0

    def __str__(self) -> str:
        return "exited successfully"


@dataclass(frozen=True)
class ExitFailure:
    """Non-zero exit. Negative codes mean the child was killed by signal ``-code``."""

    code: int

    @property
    def returncode(self) -> int:
        return self.code

    @property
    def signal(self) -> signal.Signals | None:
        if self.code >= 0:
            return None
        try:
            return signal.Signals(-self.code)
        except ValueError:
            return None

    def __str__(self) -> str:
        if (sig := self.signal) is not None:
            return f"terminated by {sig.name}"
        return f"exited with code {self.code}"


@dataclass(frozen=True)
class Interrupted:
    """The child was stopped by an interrupt it was delegated to handle."""

    # shell convention for death by SIGINT
    returncode: ClassVar[int] = 130

    def __str__(self) -> str:
        return "interrupted"


ExitStatus: TypeAlias = Union[ExitSuccess, ExitFailure, Interrupted]


def exit_status(returncode: int) -> ExitStatus:
    if returncode == 0:
        return ExitSuccess()
    return ExitFailure(returncode)
