from __future__ import annotations

import subprocess
import time
from enum import Enum
from typing import Any

from ..errors import ProcessLaunchError
from ..utils.logging import get_logger
from ..utils.platform import HostPlatform

DEFAULT_ATTEMPTS = 5
DEFAULT_BACKOFF_SEC = 2.0


class TerminationOutcome(str, Enum):
    """How a recorder process ended."""

    CLEAN = "terminated-cleanly"
    FORCED = "terminated-forcibly"  # video may be truncated or corrupt
    UNCONFIRMED = "termination-unconfirmed"  # exit was not observed within the wait bound


class TerminationProtocol:
    """
    Graceful-then-forceful shutdown of a host recorder process.

    With a known PID the process gets a graceful interrupt, retried up to
    `attempts` times with `backoff` seconds between tries; if every try fails
    it is force-killed once. Without a PID every process with the tool's name
    is stopped, which also hits other devices recording with the same tool.
    """

    def __init__(
        self,
        platform: HostPlatform,
        process_name: str,
        *,
        attempts: int = DEFAULT_ATTEMPTS,
        backoff: float = DEFAULT_BACKOFF_SEC,
    ) -> None:
        self.platform = platform
        self.process_name = process_name
        self.attempts = attempts
        self.backoff = backoff
        self._log = get_logger(__name__)

    def terminate(self, pid: int | None) -> TerminationOutcome:
        if pid is None:
            return self._terminate_by_name()

        for attempt in range(1, self.attempts + 1):
            try:
                if self.platform.interrupt(pid):
                    self._log.info(
                        "Recorder interrupted",
                        action="termination",
                        pid=pid,
                        attempt=attempt,
                        outcome=TerminationOutcome.CLEAN.value,
                    )
                    return TerminationOutcome.CLEAN
            except (ProcessLaunchError, subprocess.SubprocessError, OSError) as e:
                self._log.warning(
                    "Interrupt attempt raised",
                    action="interrupt",
                    pid=pid,
                    attempt=attempt,
                    error=str(e),
                )
            if attempt < self.attempts:
                time.sleep(self.backoff)

        self._log.warning(
            "Graceful interrupt failed; forcing termination",
            action="force_kill",
            pid=pid,
            attempts=self.attempts,
        )
        try:
            self.platform.force_kill(pid)
        except (ProcessLaunchError, OSError) as e:
            self._log.error("Forced termination failed", action="force_kill", pid=pid, error=str(e))
        return TerminationOutcome.FORCED

    def _terminate_by_name(self) -> TerminationOutcome:
        name = self.platform.executable_name(self.process_name)
        self._log.warning(
            "No PID for recorder; stopping every process by name",
            action="termination",
            name=name,
        )
        graceful = self.platform.interrupt_by_name(name)
        return TerminationOutcome.CLEAN if graceful else TerminationOutcome.FORCED


def wait_for_exit(process: subprocess.Popen[Any], timeout: float) -> bool:
    """Wait up to `timeout` seconds for `process` to exit. Returns False on timeout."""
    try:
        process.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        return False
    return True
