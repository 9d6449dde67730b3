"""Pass pipe endpoints to a child by identifier instead of via stdio.

The child receives the endpoints as command line arguments, in the textual
form produced by ``str(CommunicationHandle)``, and reopens them with
:func:`open_communication_handle`::

    import sys
    from proctor.channel import open_communication_handle

    with open_communication_handle(sys.argv[1], "rb") as inbound:
        ...
"""

from __future__ import annotations

import errno
import logging
import os
import re
from dataclasses import dataclass
from typing import IO, TYPE_CHECKING, Any, TypeVar

from .platform import create_pipe, export_handle, import_handle
from .spawn import cleanup_process, spawn
from .tasks import start_task

if TYPE_CHECKING:
    from collections.abc import Callable

    from typing_extensions import Self

    from .config import ProcessConfig
    from .status import ExitStatus

T = TypeVar("T")

logger = logging.getLogger(__name__)

_HANDLE_RE = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class CommunicationHandle:
    """An inheritable descriptor (POSIX) or handle (Windows), by number."""

    value: int

    def __str__(self) -> str:
        return str(self.value)

    @classmethod
    def parse(cls, text: str) -> Self:
        if not _HANDLE_RE.fullmatch(text):
            msg = f"not a communication handle: {text!r}"
            raise ValueError(msg)
        return cls(int(text))


def open_communication_handle(text: str, mode: str = "rb", **kwargs: Any) -> IO[Any]:
    """Take ownership of an endpoint inherited from the parent.

    ``mode`` must match the direction the parent intended for this end.
    """
    handle = CommunicationHandle.parse(text)
    writable = any(c in mode for c in "wa+")
    return open(import_handle(handle.value, writable=writable), mode, **kwargs)  # noqa: SIM115


def _close_fds(*fds: int) -> None:
    for fd in fds:
        try:
            os.close(fd)
        except OSError as e:
            logger.warning("closing descriptor %d failed: %s", fd, e)


def _run_writer(writer: Callable[[IO[bytes]], Any], stream: IO[bytes]) -> None:
    try:
        with stream:
            writer(stream)
    except BrokenPipeError:
        logger.debug("child closed its end of the channel before reading all data")
    except OSError as e:
        if e.errno != errno.EINVAL:
            raise
        logger.debug("child closed its end of the channel before reading all data")


def read_process_with_communication_handle(
    build_config: Callable[[CommunicationHandle, CommunicationHandle], ProcessConfig],
    reader: Callable[[IO[bytes]], T],
    writer: Callable[[IO[bytes]], Any],
) -> tuple[ExitStatus, T]:
    """Spawn a child connected to the parent by a pair of pipes passed by identifier.

    ``build_config`` receives the ends the child reads from and writes to,
    in that order, and returns the configuration to spawn (usually with the
    handles' ``str()`` among its arguments). ``writer`` and ``reader`` then
    run concurrently against the parent's ends; the writer's end is closed
    when it returns, so the child sees end-of-file.
    """
    ours_read, theirs_write = create_pipe()
    try:
        theirs_read, ours_write = create_pipe()
    except OSError:
        _close_fds(ours_read, theirs_write)
        raise

    inbound = open(ours_read, "rb")  # noqa: SIM115
    outbound = open(ours_write, "wb")  # noqa: SIM115
    with inbound, outbound:
        try:
            they_read = CommunicationHandle(export_handle(theirs_read))
            they_write = CommunicationHandle(export_handle(theirs_write))
            config = build_config(they_read, they_write)
            spawned = spawn(
                config.replace(
                    inherit_handles=(
                        *config.inherit_handles,
                        they_read.value,
                        they_write.value,
                    )
                )
            )
        finally:
            # the child holds its own copies now; ours would mask end-of-file
            _close_fds(theirs_read, theirs_write)

        try:
            writing = start_task(lambda: _run_writer(writer, outbound), name="channel-writer")
            reading = start_task(lambda: reader(inbound), name="channel-reader")
            status = spawned.process.wait()
            result = reading.join()
            writing.join()
        finally:
            cleanup_process(spawned)

    return status, result
