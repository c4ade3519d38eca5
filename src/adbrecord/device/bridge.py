from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Any, cast

from ..errors import DeviceBridgeError
from ..utils.cli import Completed, run_cmd
from ..utils.logging import get_logger


class AdbBridge:
    """
    Thin wrapper over the adb executable for one host.

    Every call is addressed to a device serial (`adb -s <serial> ...`).
    """

    def __init__(self, adb_path: str = "adb", *, command_timeout: float | None = 40.0) -> None:
        """
        Initialize AdbBridge.

        Args:
            adb_path (str): Path to the adb executable.
            command_timeout (float | None): Default timeout for short synchronous queries.
        """
        self.adb_path = adb_path
        self.command_timeout = command_timeout
        self._log = get_logger(__name__)

    def command(self, device: str, *args: str) -> list[str]:
        """Build `adb -s <device> <args...>`."""
        return [self.adb_path, "-s", device, *args]

    def run(
        self, device: str, *args: str, timeout: float | None = None, check: bool = False
    ) -> Completed:
        """Run an adb command for `device` to completion."""
        cmd = self.command(device, *args)
        self._log.debug("ADB", action="adb", cmd=" ".join(cmd))
        return cast(
            Completed, run_cmd(cmd, check=check, timeout=timeout or self.command_timeout)
        )

    def shell(self, device: str, *args: str, timeout: float | None = None) -> Completed:
        return self.run(device, "shell", *args, timeout=timeout)

    def pull(
        self, device: str, remote: str, local: str | Path, timeout: float | None = None
    ) -> Completed:
        return self.run(device, "pull", remote, str(Path(local).absolute()), timeout=timeout)

    def remove(self, device: str, remote: str, timeout: float | None = None) -> Completed:
        return self.shell(device, "rm", remote, timeout=timeout)

    def spawn_shell(self, device: str, *args: str) -> subprocess.Popen[Any]:
        """Start `adb -s <device> shell <args...>` without waiting; output is piped."""
        cmd = self.command(device, "shell", *args)
        self._log.debug("ADB spawn", action="adb", cmd=" ".join(cmd))
        return cast(
            subprocess.Popen[Any],
            run_cmd(
                cmd,
                spawn=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            ),
        )

    def sdk_version(self, device: str) -> int:
        """
        Return the device API level (ro.build.version.sdk).

        Raises:
            DeviceBridgeError: If the property is missing or not an integer.
        """
        res = self.shell(device, "getprop", "ro.build.version.sdk")
        text = res.stdout.strip()
        try:
            return int(text)
        except ValueError:
            raise DeviceBridgeError(
                f"Cannot read API level of {device}: {(text or res.stderr.strip())!r}"
            ) from None

    def list_devices(self) -> list[str]:
        """Return serials of devices in the `device` state, as listed by `adb devices`."""
        cmd = [self.adb_path, "devices"]
        res = cast(Completed, run_cmd(cmd, check=False, timeout=self.command_timeout))
        return parse_devices(res.stdout)

    def screenshot(self, device: str, remote_path: str, local_path: Path) -> bool:
        """
        Capture the screen to `remote_path`, pull it to `local_path` and delete the remote file.

        Returns:
            bool: True if the local file exists afterwards.
        """
        try:
            self.shell(device, "screencap", remote_path)
            self.pull(device, remote_path, local_path)
            self.remove(device, remote_path)
        except subprocess.TimeoutExpired as e:
            self._log.warning(
                "Screenshot command timed out",
                action="screenshot",
                device=device,
                cmd=" ".join(map(str, e.cmd)),
                timeout=e.timeout,
            )
        return local_path.exists()


def parse_devices(text: str) -> list[str]:
    """Parse `adb devices` output into the list of ready device serials."""
    serials: list[str] = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith(("List of devices", "*")):
            continue
        parts = line.split()
        if len(parts) >= 2 and parts[1] == "device":
            serials.append(parts[0])
    return serials
