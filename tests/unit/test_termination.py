from __future__ import annotations

import subprocess

import pytest

from adbrecord.errors import ProcessLaunchError
from adbrecord.recording import termination as term_mod
from adbrecord.recording.termination import (
    TerminationOutcome,
    TerminationProtocol,
    wait_for_exit,
)
from adbrecord.utils.platform import WindowsPlatform


class FakeWindows(WindowsPlatform):
    """Records calls instead of running windows-kill / taskkill."""

    def __init__(self, interrupt_results: list[bool | Exception], by_name: bool = False) -> None:
        super().__init__()
        self.interrupt_results = list(interrupt_results)
        self.by_name = by_name
        self.interrupts: list[int] = []
        self.force_kills: list[int] = []
        self.by_name_calls: list[str] = []

    def interrupt(self, pid: int) -> bool:
        self.interrupts.append(pid)
        item = self.interrupt_results.pop(0) if self.interrupt_results else False
        if isinstance(item, Exception):
            raise item
        return item

    def force_kill(self, pid: int) -> None:
        self.force_kills.append(pid)

    def interrupt_by_name(self, name: str) -> bool:
        self.by_name_calls.append(name)
        return self.by_name


@pytest.fixture
def sleeps(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    calls: list[float] = []
    monkeypatch.setattr(term_mod.time, "sleep", lambda s: calls.append(s))
    return calls


def test_first_interrupt_succeeds(sleeps: list[float]) -> None:
    plat = FakeWindows([True])

    assert TerminationProtocol(plat, "scrcpy").terminate(4120) is TerminationOutcome.CLEAN
    assert plat.interrupts == [4120]
    assert plat.force_kills == []
    assert sleeps == []


def test_interrupt_succeeds_on_third_attempt(sleeps: list[float]) -> None:
    plat = FakeWindows([False, False, True])

    assert TerminationProtocol(plat, "scrcpy").terminate(1) is TerminationOutcome.CLEAN
    assert len(plat.interrupts) == 3
    assert sleeps == [2.0, 2.0]
    assert plat.force_kills == []


def test_five_failed_interrupts_then_exactly_one_force_kill(sleeps: list[float]) -> None:
    plat = FakeWindows([False] * 5)

    outcome = TerminationProtocol(plat, "scrcpy").terminate(4120)

    assert outcome is TerminationOutcome.FORCED
    assert plat.interrupts == [4120] * 5
    assert plat.force_kills == [4120]
    assert sleeps == [2.0] * 4


def test_raising_helper_counts_as_failed_attempt(sleeps: list[float]) -> None:
    plat = FakeWindows(
        [
            ProcessLaunchError(["windows-kill", "-2", "9"]),
            subprocess.TimeoutExpired(["windows-kill"], 20),
            True,
        ]
    )

    assert TerminationProtocol(plat, "scrcpy").terminate(9) is TerminationOutcome.CLEAN
    assert len(plat.interrupts) == 3


def test_attempts_and_backoff_are_configurable(sleeps: list[float]) -> None:
    plat = FakeWindows([False] * 10)

    TerminationProtocol(plat, "scrcpy", attempts=2, backoff=0.1).terminate(5)

    assert len(plat.interrupts) == 2
    assert sleeps == [0.1]
    assert plat.force_kills == [5]


@pytest.mark.parametrize(
    ("graceful", "expected"),
    [(True, TerminationOutcome.CLEAN), (False, TerminationOutcome.FORCED)],
)
def test_without_pid_stops_by_image_name(
    sleeps: list[float], graceful: bool, expected: TerminationOutcome
) -> None:
    plat = FakeWindows([], by_name=graceful)

    assert TerminationProtocol(plat, "scrcpy").terminate(None) is expected
    assert plat.by_name_calls == ["scrcpy.exe"]
    assert plat.interrupts == []


class _Proc:
    def __init__(self, exits: bool) -> None:
        self.exits = exits

    def wait(self, timeout: float | None = None) -> int:
        if not self.exits:
            raise subprocess.TimeoutExpired(["scrcpy"], timeout or 0)
        return 0


def test_wait_for_exit() -> None:
    assert wait_for_exit(_Proc(True), 1) is True  # type: ignore[arg-type]
    assert wait_for_exit(_Proc(False), 1) is False  # type: ignore[arg-type]
