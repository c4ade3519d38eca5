"""
Host platform strategies.

All OS specific command syntax for finding and stopping host processes lives
here, behind a single `HostPlatform` interface with a POSIX and a Windows
implementation. The strategy is selected once via `get_host_platform()`.
"""

from __future__ import annotations

import os
import shutil
import signal
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar

import psutil

from ..platform import HostOS, current_host_os
from .cli import Completed, run_cmd
from .logging import get_logger

_log = get_logger(__name__)

# windows-kill prints these on failure while still exiting with code 0 in some versions
_HELPER_FAILURE_MARKERS = ("RuntimeError", "failed")
_HELPER_TIMEOUT_SEC = 20


@dataclass(frozen=True, slots=True)
class ProcessInfo:
    """A single row of a host process listing."""

    pid: int
    name: str
    command_line: str = ""


class HostPlatform(ABC):
    """
    OS specific operations on host processes.

    `interrupt` is a graceful stop (SIGINT / console Ctrl-C) that lets a recorder
    finalize its video container. `force_kill` is the last resort.
    """

    host_os: ClassVar[HostOS]
    # Whether list_processes_by_name returns real data on this platform
    supports_process_listing: ClassVar[bool] = True

    def executable_name(self, base: str) -> str:
        """Return the process image name for `base` on this platform."""
        return base

    def line_buffered_prefix(self) -> list[str]:
        """Command prefix that forces line buffered stdout for a child process."""
        return []

    def same_image(self, actual: str | None, expected: str) -> bool:
        return actual == expected

    def list_processes_by_name(self, name: str) -> list[ProcessInfo]:
        """
        List running processes whose image name equals `name`, ordered by PID.

        A command line that cannot be read (access denied) is reported as empty.
        Processes that exit while the table is walked are skipped.
        """
        image = self.executable_name(name)
        rows: list[ProcessInfo] = []
        for proc in psutil.process_iter(["pid", "name", "cmdline"]):
            info = proc.info
            if not self.same_image(info.get("name"), image):
                continue
            cmdline = info.get("cmdline") or []
            rows.append(ProcessInfo(info["pid"], info["name"], " ".join(cmdline)))
        return rows

    @abstractmethod
    def interrupt(self, pid: int) -> bool:
        """
        Send a graceful interrupt to `pid`.

        Returns:
            bool: True if the interrupt was delivered (or the process is already gone).
        """
        ...

    @abstractmethod
    def force_kill(self, pid: int) -> None:
        """Forcefully terminate `pid`."""
        ...

    @abstractmethod
    def interrupt_by_name(self, name: str) -> bool:
        """
        Stop every process named `name`.

        Returns:
            bool: True if the processes were interrupted gracefully, False if they were killed.
        """
        ...


class PosixPlatform(HostPlatform):
    """Linux and macOS: signals are sent directly, name based stop goes through pkill."""

    host_os = HostOS.POSIX

    def line_buffered_prefix(self) -> list[str]:
        # Without stdbuf the mirroring tool block-buffers its pipe and the startup line never shows
        if shutil.which("stdbuf"):
            return ["stdbuf", "-oL"]
        return []

    def interrupt(self, pid: int) -> bool:
        try:
            os.kill(pid, signal.SIGINT)
        except ProcessLookupError:
            _log.info("Process already exited before interrupt", action="interrupt", pid=pid)
            return True
        except PermissionError as e:
            _log.warning(
                "Not permitted to interrupt process", action="interrupt", pid=pid, error=str(e)
            )
            return False
        _log.info("Sent SIGINT", action="interrupt", pid=pid)
        return True

    def force_kill(self, pid: int) -> None:
        try:
            os.kill(pid, signal.SIGKILL)
        except ProcessLookupError:
            return
        _log.warning("Sent SIGKILL", action="force_kill", pid=pid)

    def interrupt_by_name(self, name: str) -> bool:
        res = run_cmd(["pkill", "-SIGINT", name], check=False)
        _log.info(
            "Sent SIGINT to all processes by name",
            action="interrupt",
            name=name,
            returncode=res.returncode,
        )
        return True


class WindowsPlatform(HostPlatform):
    """
    Windows: there is no SIGINT for console processes, so a helper
    (`windows-kill -2 <pid>`) injects Ctrl-C. Plain termination would leave a
    broken mp4 behind.
    """

    host_os = HostOS.WINDOWS

    def __init__(self, interrupt_helper: str = "windows-kill") -> None:
        self.interrupt_helper = interrupt_helper

    def executable_name(self, base: str) -> str:
        return base if base.lower().endswith(".exe") else f"{base}.exe"

    def same_image(self, actual: str | None, expected: str) -> bool:
        return actual is not None and actual.lower() == expected.lower()

    def interrupt(self, pid: int) -> bool:
        res = run_cmd(
            [self.interrupt_helper, "-2", str(pid)], check=False, timeout=_HELPER_TIMEOUT_SEC
        )
        if _helper_failed(res):
            _log.warning(
                "Interrupt helper reported failure",
                action="interrupt",
                pid=pid,
                returncode=res.returncode,
                output=res.output.strip(),
            )
            return False
        _log.info("Sent Ctrl-C via helper", action="interrupt", pid=pid)
        return True

    def force_kill(self, pid: int) -> None:
        res = run_cmd(["taskkill", "/F", "/PID", str(pid)], check=False)
        _log.warning(
            "Forced termination by PID", action="force_kill", pid=pid, returncode=res.returncode
        )

    def interrupt_by_name(self, name: str) -> bool:
        image = self.executable_name(name)
        res = run_cmd(["taskkill", "/F", "/IM", image], check=False)
        _log.warning(
            "Forced termination by image name",
            action="force_kill",
            name=image,
            returncode=res.returncode,
        )
        return False


def _helper_failed(res: Completed) -> bool:
    if res.returncode != 0:
        return True
    out = res.output
    return any(marker in out for marker in _HELPER_FAILURE_MARKERS)


def get_host_platform(interrupt_helper: str = "windows-kill") -> HostPlatform:
    """Return the platform strategy for the current host."""
    if current_host_os() is HostOS.WINDOWS:
        return WindowsPlatform(interrupt_helper=interrupt_helper)
    return PosixPlatform()


__all__ = [
    "ProcessInfo",
    "HostPlatform",
    "PosixPlatform",
    "WindowsPlatform",
    "get_host_platform",
]
