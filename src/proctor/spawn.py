from __future__ import annotations

import contextlib
import errno
import logging
import os
import subprocess
from typing import IO, TYPE_CHECKING, NamedTuple, Optional

from .config import ignored_options
from .errors import ExecutableNotFound, OSFailure, SpawnError
from .interrupt import delegator
from .platform import popen_options, wrap_child
from .process import Process
from .streams import CreatePipe, Inherit, NoStream, StdStream, UseHandle

if TYPE_CHECKING:
    from collections.abc import Iterator

    from .config import ProcessConfig

logger = logging.getLogger(__name__)

_NOT_EXECUTABLE = {errno.ENOENT, errno.EACCES, errno.ENOEXEC, errno.ENOTDIR}


class Spawned(NamedTuple):
    """The parent's side of a new child: pipe ends for ``CreatePipe`` streams, and the handle."""

    stdin: Optional[IO[bytes]]
    stdout: Optional[IO[bytes]]
    stderr: Optional[IO[bytes]]
    process: Process


def _popen_stream(directive: StdStream) -> int | None:
    if isinstance(directive, Inherit):
        return None
    if isinstance(directive, CreatePipe):
        return subprocess.PIPE
    if isinstance(directive, NoStream):
        return subprocess.DEVNULL
    if isinstance(directive, UseHandle):
        return directive.fileno()
    msg = f"not a stream directive: {directive!r}"
    raise TypeError(msg)


def _spawn_error(config: ProcessConfig, exc: OSError) -> SpawnError:
    # a missing working directory surfaces as ENOENT too
    bad_cwd = config.cwd is not None and not os.path.isdir(config.cwd)
    if not bad_cwd and (
        isinstance(exc, (FileNotFoundError, PermissionError, NotADirectoryError))
        or exc.errno in _NOT_EXECUTABLE
    ):
        return ExecutableNotFound(config.command)
    return OSFailure(exc.errno, exc.strerror or str(exc))


def spawn(config: ProcessConfig) -> Spawned:
    """Start ``config`` as a child process.

    Pipe ends meant for the child are closed in the parent as soon as the
    child exists, or on failure, before this returns.

    Raises:
        ExecutableNotFound: the command cannot be found or executed.
        OSFailure: any other OS-level failure to create the child.
    """
    for name in ignored_options(config):
        logger.debug("%s has no effect on this platform", name)

    stdio = {
        "stdin": _popen_stream(config.stdin),
        "stdout": _popen_stream(config.stdout),
        "stderr": _popen_stream(config.stderr),
    }

    # installed before the fork so an early interrupt is not lost
    delegation = delegator.acquire() if config.delegate_interrupt else None
    try:
        popen = subprocess.Popen(  # noqa: S603
            config.argv,
            cwd=config.cwd,
            env=config.env,
            **stdio,
            **popen_options(config),
        )
    except OSError as e:
        if delegation is not None:
            delegation.release()
        logger.debug("spawning %s failed: %s", config.command, e)
        raise _spawn_error(config, e) from e
    except BaseException:
        if delegation is not None:
            delegation.release()
        raise

    child = wrap_child(popen, config)
    logger.debug(
        "spawned pid=%d argv=%s cwd=%s", popen.pid, config.argv, config.cwd or "."
    )
    process = Process(
        child,
        config.argv,
        delegate_interrupt=config.delegate_interrupt,
        delegation=delegation,
    )
    if delegation is not None:
        delegation.attach(process)
    return Spawned(popen.stdin, popen.stdout, popen.stderr, process)


def cleanup_process(spawned: Spawned) -> None:
    """Terminate the child if needed, close the parent's pipe ends and reap in the background."""
    process = spawned.process
    process.terminate()
    for stream in (spawned.stdin, spawned.stdout, spawned.stderr):
        if stream is None:
            continue
        try:
            stream.close()
        except BrokenPipeError:
            # unflushed input for a child that already went away
            pass
        except OSError as e:
            logger.warning("closing pipe of pid %s failed: %s", process.pid, e)
    process.release_delegation()
    process.detach()


@contextlib.contextmanager
def with_process(config: ProcessConfig) -> Iterator[Spawned]:
    """Spawn ``config`` for the duration of a ``with`` block.

    However the block exits, the child is terminated if still running, the
    parent's pipe ends are closed and the child is reaped in the background.
    """
    spawned = spawn(config)
    try:
        yield spawned
    finally:
        cleanup_process(spawned)
