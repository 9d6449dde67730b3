"""How each of a child's standard streams is connected."""

from __future__ import annotations

from dataclasses import dataclass
from typing import IO, Any, Union

from typing_extensions import TypeAlias


@dataclass(frozen=True)
class Inherit:
    """Share the parent's stream unchanged."""


@dataclass(frozen=True)
class CreatePipe:
    """Create a pipe; the parent keeps one end as a binary file object."""


@dataclass(frozen=True)
class UseHandle:
    """Connect the stream to a descriptor (or object with ``fileno()``) the caller already owns.

    The caller keeps ownership: the descriptor is duplicated into the child
    and is never closed by the library.
    """

    handle: int | IO[Any]

    def fileno(self) -> int:
        if isinstance(self.handle, int):
            return self.handle
        return self.handle.fileno()


@dataclass(frozen=True)
class NoStream:
    """Connect the stream to the null device."""


StdStream: TypeAlias = Union[Inherit, CreatePipe, UseHandle, NoStream]

INHERIT = Inherit()
CREATE_PIPE = CreatePipe()
NO_STREAM = NoStream()


def parse_stream(value: str | int) -> StdStream:
    """Parse the configuration file spelling of a stream directive."""
    if isinstance(value, int):
        return UseHandle(value)
    try:
        return _NAMED[value]
    except KeyError:
        msg = f"unknown stream {value!r}, expected one of {sorted(_NAMED)} or a descriptor"
        raise ValueError(msg) from None


_NAMED: dict[str, StdStream] = {
    "inherit": INHERIT,
    "pipe": CREATE_PIPE,
    "null": NO_STREAM,
}
