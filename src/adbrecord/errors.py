"""
Exceptions raised by the recorder.

Fatal errors abort the current (device, test) recording workflow and name the
violated precondition. Degradations that are not fatal (missing PIDs, a failing
interrupt helper, timed out waits) are logged instead and never show up here.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any


class RecorderError(Exception):
    """Base class for all recorder errors."""


class ConfigurationError(RecorderError):
    """A required tool path is missing, blank, or does not point to an existing file."""


class NoSuchRecordingError(LookupError, RecorderError):
    """Stop was requested for a key that has no registered recording session."""

    def __init__(self, key: Any = None) -> None:
        super().__init__("no such recording")
        self.key = key

    def __str__(self) -> str:
        if self.key is None:
            return "no such recording"
        return f"no such recording: {self.key}"


class ProcessLaunchError(RecorderError):
    """An external command could not be started (binary missing, not executable, bad args)."""

    def __init__(self, argv: Sequence[str], cause: BaseException | None = None) -> None:
        self.argv = [str(a) for a in argv]
        self.cause = cause
        message = f"Failed to launch command: {' '.join(self.argv)}"
        if cause is not None:
            message += f" ({cause})"
        super().__init__(message)


class RecordingStartError(RecorderError):
    """A recording tool exited or timed out before it reported that recording had begun."""


class DeviceBridgeError(RecorderError):
    """A device query through adb returned output that could not be interpreted."""


__all__ = [
    "RecorderError",
    "ConfigurationError",
    "NoSuchRecordingError",
    "ProcessLaunchError",
    "RecordingStartError",
    "DeviceBridgeError",
]
