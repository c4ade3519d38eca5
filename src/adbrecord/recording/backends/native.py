from __future__ import annotations

import subprocess
from collections.abc import Callable
from pathlib import Path
from typing import Any

from ...config.models import NativeRecorderSettings, RecordingType
from ...device.bridge import AdbBridge
from ...reporting.artifacts import ArtifactLocation
from ...utils.cli import Completed
from ...utils.logging import get_logger
from ..session import Session, SessionKey
from ..termination import TerminationOutcome, wait_for_exit
from .base import RecorderBackend


class NativeRecorder(RecorderBackend):
    """
    Records with `adb shell screenrecord` on the device and pulls the file when done.

    The recorder process runs on the device. The local process is only the adb
    bridge, so the session has no host PID and stopping goes through the device shell.
    """

    kind = RecordingType.NATIVE

    def __init__(self, bridge: AdbBridge, settings: NativeRecorderSettings | None = None) -> None:
        """
        Initialize NativeRecorder.

        Args:
            bridge (AdbBridge): adb command bridge.
            settings (NativeRecorderSettings | None): Remote path and stop timeouts.
        """
        self.bridge = bridge
        self.settings = settings or NativeRecorderSettings()
        self._log = get_logger(__name__)

    def remote_path(self, key: SessionKey) -> str:
        return f"{self.settings.remote_dir.rstrip('/')}/{key.test_class}-{key.test_method}.mp4"

    def start_recording(self, key: SessionKey, location: ArtifactLocation) -> Session:
        remote = self.remote_path(key)
        proc = self.bridge.spawn_shell(key.device, "screenrecord", remote)
        self._log.info(
            "screenrecord started",
            action="recording_started",
            device=key.device,
            remote=remote,
            bridge_pid=getattr(proc, "pid", None),
        )
        return Session(
            key=key,
            kind=self.kind,
            recorder=self,
            process=proc,
            video_path=location.video,
            remote_path=remote,
        )

    def finish_recording(self, session: Session) -> Path:
        device = session.key.device
        remote = session.remote_path or self.remote_path(session.key)
        s = self.settings
        outcome = TerminationOutcome.CLEAN

        # SIGINT must reach screenrecord on the device, NOT the local adb process
        self._step(
            "interrupt",
            device,
            self.bridge.shell,
            device,
            "kill",
            "-SIGINT",
            "$(pidof screenrecord)",
            timeout=s.kill_timeout_sec,
        )

        if not wait_for_exit(session.process, s.exit_timeout_sec):
            outcome = TerminationOutcome.UNCONFIRMED
            self._log.warning(
                "adb screenrecord bridge did not exit in time",
                action="termination",
                device=device,
                timeout=s.exit_timeout_sec,
            )
        else:
            self._drain(session.process, device)

        self._step(
            "pull",
            device,
            self.bridge.pull,
            device,
            remote,
            session.video_path,
            timeout=s.pull_timeout_sec,
        )
        self._step(
            "cleanup", device, self.bridge.remove, device, remote, timeout=s.cleanup_timeout_sec
        )
        if outcome is TerminationOutcome.UNCONFIRMED:
            self._kill_bridge(session.process, device)

        session.outcome = outcome
        return session.video_path

    def _step(
        self, step: str, device: str, fn: Callable[..., Completed], *args: Any, **kwargs: Any
    ) -> Completed | None:
        """Run one bounded stop step; a timeout is logged and processing continues."""
        try:
            res = fn(*args, **kwargs)
        except subprocess.TimeoutExpired as e:
            self._log.warning(
                "Stop step timed out",
                action="recording_stop",
                step=step,
                device=device,
                timeout=e.timeout,
            )
            return None
        if res.returncode != 0:
            self._log.warning(
                "Stop step failed",
                action="recording_stop",
                step=step,
                device=device,
                returncode=res.returncode,
                output=res.output.strip(),
            )
        return res

    def _kill_bridge(self, proc: subprocess.Popen[Any], device: str) -> None:
        """Kill a local adb bridge that outlived its wait so it does not linger after stop."""
        try:
            proc.kill()
            proc.wait(timeout=5)
        except (OSError, subprocess.TimeoutExpired) as e:
            self._log.warning(
                "Failed to kill adb screenrecord bridge",
                action="termination",
                device=device,
                pid=getattr(proc, "pid", None),
                error=str(e),
            )
            return
        self._log.info("Killed adb screenrecord bridge", action="termination", device=device)

    def _drain(self, proc: subprocess.Popen[Any], device: str) -> None:
        stream = getattr(proc, "stdout", None)
        if stream is None:
            return
        try:
            out = stream.read()
        except (OSError, ValueError):
            return
        if out:
            self._log.debug("screenrecord output", device=device, output=str(out).strip())
