"""Run a child to completion, feeding it input and collecting its output."""

from __future__ import annotations

import errno
import io
import locale
import logging
from functools import partial
from typing import IO, TYPE_CHECKING

from .config import proc
from .errors import ProcessFailed
from .spawn import with_process
from .status import ExitSuccess, Interrupted
from .streams import CREATE_PIPE
from .tasks import start_task

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .config import ProcessConfig
    from .spawn import Spawned
    from .status import ExitStatus

logger = logging.getLogger(__name__)


def check_status(argv: Sequence[str], status: ExitStatus, output: str = "") -> None:
    """Raise unless ``status`` is a successful exit."""
    if isinstance(status, ExitSuccess):
        return
    if isinstance(status, Interrupted):
        raise KeyboardInterrupt
    raise ProcessFailed(argv, status, output)


def _feed(stream: IO[bytes], data: bytes) -> None:
    try:
        if data:
            stream.write(data)
        stream.close()
    except BrokenPipeError:
        logger.debug("child closed stdin before reading all input")
    except OSError as e:
        # Windows reports a vanished reader as EINVAL
        if e.errno != errno.EINVAL:
            raise
        logger.debug("child closed stdin before reading all input")


def _drain(stream: IO[bytes], encoding: str) -> str:
    with io.TextIOWrapper(stream, encoding=encoding, newline="") as text:
        return text.read()


def _communicate(spawned: Spawned, input: str, encoding: str | None) -> tuple[str, str]:
    encoding = encoding or locale.getpreferredencoding(False)
    writer = None
    if spawned.stdin is not None:
        writer = start_task(
            partial(_feed, spawned.stdin, input.encode(encoding)), name="stdin-writer"
        )
    errors = None
    if spawned.stderr is not None:
        errors = start_task(partial(_drain, spawned.stderr, encoding), name="stderr-reader")

    out = _drain(spawned.stdout, encoding) if spawned.stdout is not None else ""
    err = errors.join() if errors is not None else ""
    if writer is not None:
        writer.join()
    return out, err


def read_process_with_exit_code(
    config: ProcessConfig, input: str = "", *, encoding: str | None = None
) -> tuple[ExitStatus, str, str]:
    """Run ``config`` with all three streams piped. Never raises on a failed exit."""
    piped = config.replace(stdin=CREATE_PIPE, stdout=CREATE_PIPE, stderr=CREATE_PIPE)
    with with_process(piped) as spawned:
        out, err = _communicate(spawned, input, encoding)
        status = spawned.process.wait()
    return status, out, err


def read_config_process(
    config: ProcessConfig, input: str = "", *, encoding: str | None = None
) -> str:
    """Run ``config`` with stdin and stdout piped and return everything it printed.

    Raises:
        ProcessFailed: the child exited unsuccessfully.
        KeyboardInterrupt: the child was stopped by a delegated interrupt.
    """
    piped = config.replace(stdin=CREATE_PIPE, stdout=CREATE_PIPE)
    with with_process(piped) as spawned:
        out, _ = _communicate(spawned, input, encoding)
        status = spawned.process.wait()
    check_status(config.argv, status, out)
    return out


def read_process(
    command: str,
    args: Sequence[str] = (),
    input: str = "",
    *,
    encoding: str | None = None,
) -> str:
    return read_config_process(proc(command, args), input, encoding=encoding)


def call_config_process(config: ProcessConfig) -> None:
    with with_process(config) as spawned:
        status = spawned.process.wait()
    check_status(config.argv, status)


def call_process(command: str, args: Sequence[str] = ()) -> None:
    """Run ``command`` on the parent's streams and raise if it fails."""
    call_config_process(proc(command, args))
