import signal
import sys
import threading
import time

import pytest

from proctor import ExitFailure, ExitSuccess, Interrupted, Process, WaitError
from proctor.interrupt import InterruptDelegator
from proctor.platform import INTERRUPT_RETURNCODE
from proctor.tasks import start_task

from .fakes import FakeChild


def _until(predicate, timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        assert time.monotonic() < deadline, "condition not reached in time"
        time.sleep(0.005)


def test_wait_twice() -> None:
    child = FakeChild()
    process = Process(child, ["fake"])
    child.exited.set()

    assert process.wait() == ExitSuccess()
    assert process.wait() == ExitSuccess()
    assert child.reaps == 1


def test_concurrent_waits_reap_once() -> None:
    child = FakeChild(returncode=3)
    process = Process(child, ["fake"])

    waiters = [start_task(process.wait, name=f"waiter-{i}") for i in range(16)]
    time.sleep(0.05)
    assert not any(w.done() for w in waiters)

    child.exited.set()
    results = {w.join(timeout=5) for w in waiters}

    assert results == {ExitFailure(3)}
    assert child.reaps == 1


def test_poll_before_and_after_exit() -> None:
    child = FakeChild(returncode=1)
    process = Process(child, ["fake"])

    assert process.poll() is None
    child.exited.set()
    assert process.poll() == ExitFailure(1)
    assert process.wait() == ExitFailure(1)
    assert process.poll() == ExitFailure(1)
    assert child.reaps == 1


def test_poll_defers_to_running_reaper() -> None:
    child = FakeChild()
    process = Process(child, ["fake"])

    process.detach()
    calls = child.try_reaps
    assert process.poll() is None
    assert child.try_reaps == calls

    child.exited.set()
    _until(lambda: process.poll() is not None)
    assert process.poll() == ExitSuccess()
    assert child.reaps == 1


def test_poll_never_contradicts_wait() -> None:
    child = FakeChild(returncode=7)
    process = Process(child, ["fake"])
    waiter = start_task(process.wait)

    child.exited.set()
    status = waiter.join(timeout=5)

    assert process.poll() == status == ExitFailure(7)


def test_detach_reaps_unattended() -> None:
    child = FakeChild()
    process = Process(child, ["fake"])

    process.detach()
    child.exited.set()

    _until(lambda: process.get_pid() is None)
    assert child.reaps == 1


def test_pid_cleared_after_reap() -> None:
    child = FakeChild()
    process = Process(child, ["fake"])

    assert process.pid == 4242
    child.exited.set()
    process.wait()
    assert process.pid is None


def test_signals_dropped_after_reap() -> None:
    child = FakeChild()
    process = Process(child, ["fake"])

    process.terminate()
    child.exited.set()
    process.wait()
    process.terminate()
    process.kill()
    process.send_signal(9)
    process.interrupt_group()

    assert child.signals == ["terminate"]


def test_wait_error_is_sticky() -> None:
    child = FakeChild()
    child.wait_error = WaitError("no child processes")
    process = Process(child, ["fake"])

    with pytest.raises(WaitError, match="no child processes"):
        process.wait()
    with pytest.raises(WaitError, match="no child processes"):
        process.wait()
    with pytest.raises(WaitError):
        process.poll()


def test_detach_from_other_thread_then_wait() -> None:
    child = FakeChild(returncode=2)
    process = Process(child, ["fake"])
    abandoned = threading.Event()

    def impatient() -> None:
        # a waiter that gives up before the child exits
        process.detach()
        abandoned.set()

    start_task(impatient).join(timeout=5)
    assert abandoned.is_set()

    child.exited.set()
    assert start_task(process.wait).join(timeout=5) == ExitFailure(2)
    assert child.reaps == 1


@pytest.mark.skipif(sys.platform == "win32", reason="lock waits are not interruptible")
def test_interrupted_waiter_leaves_reap_running() -> None:
    child = FakeChild()
    process = Process(child, ["fake"])
    timer = threading.Timer(0.2, signal.raise_signal, (signal.SIGINT,))
    timer.start()

    with pytest.raises(KeyboardInterrupt):
        process.wait()
    timer.join()

    child.exited.set()
    assert process.wait() == ExitSuccess()
    assert process.wait() == ExitSuccess()
    assert child.reaps == 1


@pytest.mark.parametrize(
    ("delegate", "status"),
    [(True, Interrupted()), (False, ExitFailure(INTERRUPT_RETURNCODE))],
)
def test_interrupt_exit_classification(delegate: bool, status: object) -> None:
    child = FakeChild(returncode=INTERRUPT_RETURNCODE)
    process = Process(child, ["fake"], delegate_interrupt=delegate)
    child.exited.set()

    assert process.wait() == status
    assert process.wait() == status
    assert child.reaps == 1


def test_delegated_normal_exit_is_not_interrupted() -> None:
    child = FakeChild(returncode=0)
    process = Process(child, ["fake"], delegate_interrupt=True)
    child.exited.set()

    assert process.wait() == ExitSuccess()


def test_reap_releases_delegation() -> None:
    delegator = InterruptDelegator(signals=())
    token = delegator.acquire()
    child = FakeChild()
    token.attach(child)
    process = Process(child, ["fake"], delegate_interrupt=True, delegation=token)

    assert delegator.active == 1
    child.exited.set()
    process.wait()

    assert token.released
    assert delegator.active == 0


@pytest.mark.parametrize(
    ("returncode", "status"),
    [(130, Interrupted()), (1, Interrupted()), (0, ExitSuccess())],
)
def test_trapped_interrupt_classification(returncode: int, status: object) -> None:
    delegator = InterruptDelegator(signals=())
    token = delegator.acquire()
    child = FakeChild(returncode=returncode)
    process = Process(child, ["fake"], delegate_interrupt=True, delegation=token)
    token.attach(process)

    delegator._handle(signal.SIGINT, None)
    child.exited.set()

    assert child.signals == [("forward", signal.SIGINT)]
    assert process.wait() == status
    assert process.wait() == status


def test_nonzero_exit_without_interrupt_is_failure() -> None:
    delegator = InterruptDelegator(signals=())
    token = delegator.acquire()
    child = FakeChild(returncode=130)
    process = Process(child, ["fake"], delegate_interrupt=True, delegation=token)
    token.attach(process)
    child.exited.set()

    assert process.wait() == ExitFailure(130)


def test_no_forwarding_after_reap() -> None:
    delegator = InterruptDelegator(signals=())
    token = delegator.acquire()
    child = FakeChild()
    process = Process(child, ["fake"], delegate_interrupt=True, delegation=token)
    token.attach(process)
    child.exited.set()
    process.wait()

    process.forward_interrupt(signal.SIGINT)

    assert child.signals == []
