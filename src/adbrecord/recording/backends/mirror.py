from __future__ import annotations

import shutil
import subprocess
import threading
import time
from pathlib import Path
from typing import IO, Any, cast

from ...config.models import MirrorRecorderSettings, RecordingType, TerminationSettings
from ...errors import ConfigurationError, RecordingStartError
from ...reporting.artifacts import ArtifactLocation
from ...utils.cli import run_cmd
from ...utils.logging import get_logger
from ...utils.platform import HostPlatform
from ..pid import PidResolver
from ..session import Session, SessionKey
from ..termination import TerminationOutcome, TerminationProtocol, wait_for_exit
from .base import RecorderBackend


class _OutputPump:
    """
    Reads the tool's merged stdout/stderr on a daemon thread for the whole
    lifetime of the process, so the pipe never fills up, and flags the startup marker.
    """

    def __init__(self, stream: IO[str], marker: str, device: str) -> None:
        self._stream = stream
        self._marker = marker
        self._device = device
        self._log = get_logger(__name__)
        self.started = threading.Event()
        self.closed = threading.Event()
        self._thread = threading.Thread(
            target=self._run, name=f"mirror-output-{device}", daemon=True
        )

    def start(self) -> None:
        self._thread.start()

    def _run(self) -> None:
        try:
            for raw in self._stream:
                line = raw.rstrip("\r\n")
                if not self.started.is_set() and self._marker in line:
                    self._log.info("Mirroring tool reported start", device=self._device, line=line)
                    self.started.set()
                else:
                    self._log.debug("Mirroring tool output", device=self._device, line=line)
        except (OSError, ValueError):
            # Stream closed under us (process killed)
            pass
        finally:
            self.closed.set()

    def wait_started(self, timeout: float) -> bool:
        """Block until the marker is seen, the stream closes, or `timeout` elapses."""
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if self.started.wait(0.1):
                return True
            if self.closed.is_set():
                return self.started.is_set()
        return self.started.is_set()


class MirrorRecorder(RecorderBackend):
    """
    Records with scrcpy running on the host; scrcpy writes the mp4 straight to the
    final path, so there is nothing to pull afterwards.

    Start blocks until scrcpy prints its startup marker (bounded by
    `startup_timeout_sec`) and then waits `settle_delay_sec` more, because the
    tool's timestamps lag the actual start of recording.
    """

    kind = RecordingType.MIRROR

    def __init__(
        self,
        scrcpy_path: str | None,
        platform: HostPlatform,
        settings: MirrorRecorderSettings | None = None,
        termination: TerminationSettings | None = None,
        *,
        resolver: PidResolver | None = None,
        protocol: TerminationProtocol | None = None,
    ) -> None:
        """
        Initialize MirrorRecorder.

        Args:
            scrcpy_path (str | None): Path to scrcpy. Validated when a recording starts.
            platform (HostPlatform): Host platform strategy.
            settings (MirrorRecorderSettings | None): Command and timeout settings.
            termination (TerminationSettings | None): PID lookup and interrupt retry policy.
            resolver (PidResolver | None): Override for the PID resolver.
            protocol (TerminationProtocol | None): Override for the termination protocol.
        """
        self.scrcpy_path = scrcpy_path
        self.platform = platform
        self.settings = settings or MirrorRecorderSettings()
        t = termination or TerminationSettings()
        self.resolver = resolver or PidResolver(
            platform,
            self.settings.process_name,
            attempts=t.pid_lookup_attempts,
            interval=t.pid_lookup_interval_sec,
        )
        self.protocol = protocol or TerminationProtocol(
            platform,
            self.settings.process_name,
            attempts=t.interrupt_attempts,
            backoff=t.interrupt_backoff_sec,
        )
        self._log = get_logger(__name__)

    def validate(self) -> None:
        path = self.scrcpy_path
        if not path or not path.strip():
            raise ConfigurationError("Recording with 'mirror' requires a valid scrcpy path")
        if not Path(path).is_file() and shutil.which(path) is None:
            raise ConfigurationError(
                f"Recording with 'mirror' requires a valid scrcpy path; {path!r} does not exist"
            )

    def record_argument(self, video_path: Path) -> str:
        """The --record option; its path also identifies the process in host listings."""
        return f"--record={video_path.absolute()}"

    def build_command(self, device: str, video_path: Path) -> list[str]:
        return [
            *self.platform.line_buffered_prefix(),
            cast(str, self.scrcpy_path),
            "-s",
            device,
            "-b",
            self.settings.bitrate,
            "--no-window",
            "--no-playback",
            "--no-audio",
            self.record_argument(video_path),
        ]

    def start_recording(self, key: SessionKey, location: ArtifactLocation) -> Session:
        self.validate()
        cmd = self.build_command(key.device, location.video)
        wrapped = cmd[0] != self.scrcpy_path
        self._log.info(
            "Starting mirroring tool",
            action="recording_start",
            device=key.device,
            cmd=" ".join(cmd),
        )
        proc = cast(
            subprocess.Popen[Any],
            run_cmd(
                cmd,
                spawn=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            ),
        )

        self._await_startup(proc, key.device)

        if self.settings.settle_delay_sec > 0:
            time.sleep(self.settings.settle_delay_sec)

        pid = self._host_pid(proc, key.device, location.video, wrapped)
        self._log.info(
            "Mirroring tool recording", action="recording_started", device=key.device, pid=pid
        )
        return Session(
            key=key,
            kind=self.kind,
            recorder=self,
            process=proc,
            video_path=location.video,
            host_pid=pid,
        )

    def _host_pid(
        self, proc: subprocess.Popen[Any], device: str, video_path: Path, wrapped: bool
    ) -> int | None:
        """
        PID to signal on stop. The spawned PID is exact unless the tool was started
        through a launcher prefix; then the host listing is searched by session token.
        """
        spawned = getattr(proc, "pid", None)
        if not wrapped and spawned is not None:
            return spawned
        token = self.record_argument(video_path)
        return self.resolver.find_host_pid(device, token=token) or spawned

    def _await_startup(self, proc: subprocess.Popen[Any], device: str) -> None:
        stream = proc.stdout
        if stream is None:
            self._kill(proc)
            raise RecordingStartError("Mirroring tool output is not readable; cannot detect start")

        pump = _OutputPump(stream, self.settings.startup_marker, device)
        pump.start()
        if pump.wait_started(self.settings.startup_timeout_sec):
            return

        if pump.closed.is_set():
            code = proc.poll()
            self._kill(proc)
            raise RecordingStartError(
                f"Mirroring tool for {device} exited before recording started (exit code {code})"
            )
        self._kill(proc)
        raise RecordingStartError(
            f"Mirroring tool for {device} did not report "
            f"{self.settings.startup_marker!r} within {self.settings.startup_timeout_sec}s"
        )

    def _kill(self, proc: subprocess.Popen[Any]) -> None:
        if proc.poll() is not None:
            return
        try:
            proc.kill()
            proc.wait(timeout=5)
        except (OSError, subprocess.TimeoutExpired) as e:
            self._log.warning(
                "Failed to kill mirroring tool", pid=getattr(proc, "pid", None), error=str(e)
            )

    def finish_recording(self, session: Session) -> Path:
        device = session.key.device
        self._log.info(
            "Stopping mirroring tool", action="recording_stop", device=device, pid=session.host_pid
        )
        outcome = self.protocol.terminate(session.host_pid)

        if not wait_for_exit(session.process, self.settings.exit_timeout_sec):
            outcome = TerminationOutcome.UNCONFIRMED
            self._log.warning(
                "Mirroring tool did not exit in time; video may be incomplete",
                action="termination",
                device=device,
                pid=session.host_pid,
                timeout=self.settings.exit_timeout_sec,
            )

        session.outcome = outcome
        return session.video_path
