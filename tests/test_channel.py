import os
import sys
from typing import IO

import pytest

from proctor import ExecutableNotFound, ExitFailure, ExitSuccess, proc
from proctor.channel import (
    CommunicationHandle,
    open_communication_handle,
    read_process_with_communication_handle,
)

REVERSER = """
import sys
from proctor.channel import open_communication_handle

with open_communication_handle(sys.argv[1], "rb") as inbound:
    data = inbound.read()
with open_communication_handle(sys.argv[2], "wb") as outbound:
    outbound.write(data[::-1] + b"123")
"""


def _python_with_handles(code: str):
    def build(they_read: CommunicationHandle, they_write: CommunicationHandle):
        return proc(sys.executable, ["-c", code, str(they_read), str(they_write)])

    return build


def _read_text(stream: IO[bytes]) -> str:
    return stream.read().decode()


def test_round_trip_through_child() -> None:
    status, output = read_process_with_communication_handle(
        _python_with_handles(REVERSER),
        _read_text,
        lambda stream: stream.write(b"hello"),
    )

    assert status == ExitSuccess()
    assert output == "olleh123"


def test_child_ignores_input() -> None:
    # more than any pipe buffer, so the writer can only finish by failing
    payload = b"x" * (4 * 1024 * 1024)

    status, output = read_process_with_communication_handle(
        _python_with_handles("import sys; sys.exit(0)"),
        _read_text,
        lambda stream: stream.write(payload),
    )

    assert status == ExitSuccess()
    assert output == ""


def test_child_failure_reported() -> None:
    status, output = read_process_with_communication_handle(
        _python_with_handles("import sys; sys.exit(4)"),
        _read_text,
        lambda stream: None,
    )

    assert status == ExitFailure(4)
    assert output == ""


def test_reader_error_propagates() -> None:
    def reader(stream: IO[bytes]) -> str:
        raise LookupError("reader gave up")

    with pytest.raises(LookupError, match="reader gave up"):
        read_process_with_communication_handle(
            _python_with_handles("pass"), reader, lambda stream: None
        )


def test_build_config_error_propagates() -> None:
    def build(they_read: CommunicationHandle, they_write: CommunicationHandle):
        raise KeyError("no config")

    with pytest.raises(KeyError):
        read_process_with_communication_handle(build, _read_text, lambda stream: None)


@pytest.mark.skipif(not os.path.isdir("/proc/self/fd"), reason="needs /proc/self/fd")
def test_failed_spawn_closes_channel() -> None:
    def build(they_read: CommunicationHandle, they_write: CommunicationHandle):
        return proc("definitelydoesnotexist", [str(they_read), str(they_write)])

    before = sorted(os.listdir("/proc/self/fd"))

    with pytest.raises(ExecutableNotFound):
        read_process_with_communication_handle(build, _read_text, lambda stream: None)

    assert sorted(os.listdir("/proc/self/fd")) == before


def test_handles_added_to_config() -> None:
    def build(they_read: CommunicationHandle, they_write: CommunicationHandle):
        config = _python_with_handles(REVERSER)(they_read, they_write)
        return config.replace(inherit_handles=())

    status, output = read_process_with_communication_handle(
        build, _read_text, lambda stream: stream.write(b"abc")
    )

    assert status == ExitSuccess()
    assert output == "cba123"


@pytest.mark.parametrize("value", [0, 7, 1234567])
def test_handle_text_round_trip(value: int) -> None:
    handle = CommunicationHandle(value)
    assert CommunicationHandle.parse(str(handle)) == handle


@pytest.mark.parametrize("text", ["", "-1", "abc", "12 ", "0x10"])
def test_handle_parse_rejects(text: str) -> None:
    with pytest.raises(ValueError, match="not a communication handle"):
        CommunicationHandle.parse(text)


@pytest.mark.skipif(sys.platform == "win32", reason="descriptor numbers")
def test_open_communication_handle_takes_ownership() -> None:
    r, w = os.pipe()
    with open_communication_handle(str(w), "wb") as stream:
        stream.write(b"ping")
    with open_communication_handle(str(r), "rb") as stream:
        assert stream.read() == b"ping"

    with pytest.raises(OSError):
        os.close(w)
