from __future__ import annotations

import time

import psutil

from ..utils.logging import get_logger
from ..utils.platform import HostPlatform, ProcessInfo

DEFAULT_ATTEMPTS = 5
DEFAULT_INTERVAL_SEC = 0.5


class PidResolver:
    """
    Finds the host PID of the mirroring tool process that records a given device.

    Listing is filtered by image name; the command line must contain the device
    serial and, if given, a per-session token (the unique --record path). Rows
    whose command line is not readable match on name alone, unless a token is
    given. If several rows match, the last listed one wins.
    """

    def __init__(
        self,
        platform: HostPlatform,
        process_name: str,
        *,
        attempts: int = DEFAULT_ATTEMPTS,
        interval: float = DEFAULT_INTERVAL_SEC,
    ) -> None:
        self.platform = platform
        self.process_name = process_name
        self.attempts = attempts
        self.interval = interval
        self._log = get_logger(__name__)

    def find_host_pid(
        self, device_name: str, attempt: int = 1, *, token: str | None = None
    ) -> int | None:
        """
        Look up the PID, retrying up to `attempts` times with `interval` seconds in between.

        Args:
            device_name (str): Device serial that must appear in the command line.
            attempt (int): Attempt to start counting from (1-based).
            token (str | None): Extra command-line substring identifying the session.

        Returns:
            int | None: The PID, or None if nothing matched. None is not an error:
                callers fall back to name-based termination.
        """
        if not self.platform.supports_process_listing:
            self._log.debug(
                "Host process listing not supported on this platform",
                action="pid_lookup",
                device=device_name,
            )
            return None

        while True:
            matches = [p for p in self._list() if _matches(p, device_name, token)]
            if matches:
                pid = matches[-1].pid
                self._log.info(
                    "Host PID resolved",
                    action="pid_lookup",
                    device=device_name,
                    pid=pid,
                    attempt=attempt,
                    candidates=len(matches),
                )
                return pid
            if attempt >= self.attempts:
                self._log.warning(
                    "Host PID not found; giving up",
                    action="pid_lookup",
                    device=device_name,
                    attempts=attempt,
                )
                return None
            self._log.debug(
                "Host PID not found yet", action="pid_lookup", device=device_name, attempt=attempt
            )
            attempt += 1
            time.sleep(self.interval)

    def _list(self) -> list[ProcessInfo]:
        try:
            return self.platform.list_processes_by_name(self.process_name)
        except (psutil.Error, OSError) as e:
            # A failed listing counts as "no match" for this attempt
            self._log.warning("Process listing failed", action="pid_lookup", error=str(e))
            return []


def _matches(proc: ProcessInfo, device_name: str, token: str | None) -> bool:
    if not proc.command_line:
        return token is None
    if device_name not in proc.command_line:
        return False
    return token is None or token in proc.command_line
