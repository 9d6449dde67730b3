import signal
import sys
from pathlib import Path

import pytest
from click.testing import CliRunner

from proctor import ExitFailure, ExitSuccess, Interrupted
from proctor.main import exit_code, main


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.mark.parametrize(
    ("status", "code"),
    [
        (ExitSuccess(), 0),
        (ExitFailure(3), 3),
        (ExitFailure(-signal.SIGTERM), 128 + signal.SIGTERM),
        (Interrupted(), 130),
    ],
)
def test_exit_code(status: object, code: int) -> None:
    assert exit_code(status) == code  # type: ignore[arg-type]


def test_exec_exit_status(runner: CliRunner) -> None:
    result = runner.invoke(
        main, ["exec", sys.executable, "-c", "import sys; sys.exit(3)"]
    )
    assert result.exit_code == 3


def test_exec_env_and_cwd(runner: CliRunner, tmp_path: Path) -> None:
    code = (
        "import os, sys; "
        "sys.exit(0 if os.environ['GREETING'] == 'hi' and os.listdir('.') == ['marker'] else 1)"
    )
    (tmp_path / "marker").touch()
    result = runner.invoke(
        main,
        ["exec", "--env", "GREETING=hi", "--cwd", str(tmp_path), sys.executable, "-c", code],
    )
    assert result.exit_code == 0


def test_exec_bad_env(runner: CliRunner) -> None:
    result = runner.invoke(main, ["exec", "--env", "NOPE", "true"])
    assert result.exit_code == 2


def test_exec_missing(runner: CliRunner) -> None:
    result = runner.invoke(main, ["exec", "definitelydoesnotexist"])
    assert result.exit_code == 127


def test_run_config(runner: CliRunner, tmp_path: Path) -> None:
    path = tmp_path / "proc.toml"
    path.write_text(
        f"command = {str(sys.executable)!r}\n"
        'args = ["-c", "import sys; sys.exit(5)"]\n'
        "create_group = true\n"
    )
    result = runner.invoke(main, ["run", str(path)])
    assert result.exit_code == 5


def test_run_bad_config(runner: CliRunner, tmp_path: Path) -> None:
    path = tmp_path / "proc.toml"
    path.write_text('args = ["x"]\n')

    result = runner.invoke(main, ["run", str(path)])

    assert result.exit_code == 1
    assert "missing keys: ['command']" in result.output


def test_run_missing_config(runner: CliRunner, tmp_path: Path) -> None:
    result = runner.invoke(main, ["run", str(tmp_path / "absent.toml")])

    assert result.exit_code == 2
    assert "does not exist" in result.output
