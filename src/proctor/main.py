from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

import click
from click.exceptions import Exit
from rich.console import Console
from rich.logging import RichHandler

from .config import load_config, proc
from .errors import ConfigError, ExecutableNotFound, SpawnError
from .spawn import with_process
from .status import ExitFailure, ExitSuccess, Interrupted

if TYPE_CHECKING:
    from .config import ProcessConfig
    from .status import ExitStatus

err = Console(stderr=True)


def exit_code(status: ExitStatus) -> int:
    """Shell-style exit code for ``status``."""
    if isinstance(status, ExitFailure) and status.code < 0:
        return 128 - status.code
    return status.returncode


def _parse_env(pairs: tuple[str, ...]) -> dict[str, str]:
    env = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            msg = f"expected KEY=VALUE, got {pair!r}"
            raise click.BadParameter(msg, param_hint="--env")
        env[key] = value
    return env


def _run(config: ProcessConfig) -> None:
    try:
        with with_process(config) as spawned:
            status = spawned.process.wait()
    except SpawnError as e:
        err.print(str(e), style="red", markup=False)
        raise Exit(127 if isinstance(e, ExecutableNotFound) else 1) from None

    if not isinstance(status, ExitSuccess):
        style = "yellow" if isinstance(status, Interrupted) else "red"
        err.print(f"{config.command}: {status}", style=style, markup=False)
    raise Exit(exit_code(status))


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log process lifecycle events.")
@click.version_option(package_name="proctor")
def main(*, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err, show_path=False)],
        force=True,
    )


@main.command()
@click.argument(
    "config_path", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
def run(config_path: Path) -> None:
    """Run the process described by a TOML file."""
    try:
        config = load_config(config_path)
    except (ConfigError, ValueError) as e:
        err.print(str(e), markup=False)
        raise Exit(1) from None
    _run(config)


@main.command("exec", context_settings={"allow_interspersed_args": False})
@click.argument("command")
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.option("--cwd", type=click.Path(file_okay=False, path_type=Path))
@click.option("--env", "env_pairs", multiple=True, metavar="KEY=VALUE")
@click.option("--create-group", is_flag=True)
@click.option("--new-session", is_flag=True)
@click.option("--delegate-interrupt", is_flag=True)
def exec_(
    command: str,
    args: tuple[str, ...],
    *,
    cwd: Path | None,
    env_pairs: tuple[str, ...],
    create_group: bool,
    new_session: bool,
    delegate_interrupt: bool,
) -> None:
    """Run COMMAND with ARGS and exit with its status."""
    env = _parse_env(env_pairs)
    _run(
        proc(
            command,
            args,
            cwd=cwd,
            env={**os.environ, **env} if env else None,
            create_group=create_group,
            new_session=new_session,
            delegate_interrupt=delegate_interrupt,
        )
    )


if __name__ == "__main__":
    main()
