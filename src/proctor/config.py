import dataclasses
import os
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Optional, Union

import dotenv
from typing_extensions import Self

from .compat import tomllib
from .streams import INHERIT, StdStream, parse_stream
from .typecast import typecast

StrPath = Union[str, "os.PathLike[str]"]


@dataclass(frozen=True, kw_only=True)
class ProcessConfig:
    """Everything needed to spawn one child process.

    Console flags only apply on Windows, where at most one of
    ``create_new_console`` and ``detach_console`` is honored.
    ``child_user`` and ``child_group`` only apply on POSIX.
    """

    command: str
    args: Sequence[str] = ()
    cwd: Optional[StrPath] = None
    env: Optional[Mapping[str, str]] = None
    stdin: StdStream = INHERIT
    stdout: StdStream = INHERIT
    stderr: StdStream = INHERIT
    close_fds: bool = True
    create_group: bool = False
    new_session: bool = False
    create_new_console: bool = False
    detach_console: bool = False
    delegate_interrupt: bool = False
    child_user: Union[str, int, None] = None
    child_group: Union[str, int, None] = None
    # raw descriptors (POSIX) or handles (Windows) passed through exec
    inherit_handles: Sequence[int] = ()

    def __post_init__(self) -> None:
        if not self.command:
            msg = "command must not be empty"
            raise ValueError(msg)
        if isinstance(self.args, str):
            msg = "args must be a sequence of strings, not a string"
            raise TypeError(msg)
        object.__setattr__(self, "args", tuple(self.args))
        object.__setattr__(self, "inherit_handles", tuple(self.inherit_handles))
        if self.env is not None:
            object.__setattr__(self, "env", dict(self.env))

    @property
    def argv(self) -> list[str]:
        return [self.command, *self.args]

    def replace(self, **changes: object) -> Self:
        return dataclasses.replace(self, **changes)


def proc(command: str, args: Sequence[str] = (), **options: object) -> ProcessConfig:
    """Run ``command`` directly with ``args``, without a shell."""
    return ProcessConfig(command=command, args=args, **options)  # type: ignore[arg-type]


def shell(cmdline: str, **options: object) -> ProcessConfig:
    """Hand ``cmdline`` to the platform shell without interpreting it."""
    if os.name == "nt":
        return proc(os.environ.get("COMSPEC", "cmd.exe"), ["/c", cmdline], **options)
    return proc("/bin/sh", ["-c", cmdline], **options)


StreamName = Literal["inherit", "pipe", "null"]


@dataclass(kw_only=True)
class ProcessFile:
    """Schema of a TOML process definition."""

    command: str
    args: list[str] = field(default_factory=list)
    cwd: Optional[str] = None
    env: dict[str, str] = field(default_factory=dict)
    env_file: Optional[str] = None
    clear_env: bool = False
    stdin: Union[StreamName, int] = "inherit"
    stdout: Union[StreamName, int] = "inherit"
    stderr: Union[StreamName, int] = "inherit"
    close_fds: bool = True
    create_group: bool = False
    new_session: bool = False
    create_new_console: bool = False
    detach_console: bool = False
    delegate_interrupt: bool = False

    def resolve_cwd(self, base: Path) -> Path:
        return (base / self.cwd).resolve() if self.cwd else base.resolve()

    def read_env(self, cwd: Path) -> Optional[dict[str, str]]:
        if not (self.env or self.env_file or self.clear_env):
            return None

        env: dict[str, Optional[str]] = {}
        if self.env_file:
            env.update(dotenv.dotenv_values(cwd / self.env_file, interpolate=False))
        env.update(self.env)

        resolved = dotenv.main.resolve_variables(env.items(), override=True)
        overlay = {k: v for k, v in resolved.items() if v is not None}
        if self.clear_env:
            return overlay
        return {**os.environ, **overlay}

    def to_config(self, base: Path) -> ProcessConfig:
        cwd = self.resolve_cwd(base)
        return ProcessConfig(
            command=self.command,
            args=self.args,
            cwd=cwd,
            env=self.read_env(cwd),
            stdin=parse_stream(self.stdin),
            stdout=parse_stream(self.stdout),
            stderr=parse_stream(self.stderr),
            close_fds=self.close_fds,
            create_group=self.create_group,
            new_session=self.new_session,
            create_new_console=self.create_new_console,
            detach_console=self.detach_console,
            delegate_interrupt=self.delegate_interrupt,
        )


def load_config(path: Path) -> ProcessConfig:
    """Load a process definition; relative paths resolve against the file's directory."""
    data = tomllib.loads(path.read_text())
    return typecast(ProcessFile, data).to_config(path.parent)


if sys.platform == "win32":  # pragma: no cover
    _PLATFORM_IGNORED = ("child_user", "child_group")
else:
    _PLATFORM_IGNORED = ("create_new_console", "detach_console")


def ignored_options(config: ProcessConfig) -> list[str]:
    """Options set on ``config`` that have no effect on this platform."""
    return [name for name in _PLATFORM_IGNORED if getattr(config, name)]
