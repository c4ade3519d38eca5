from __future__ import annotations

from pathlib import Path

from ..config.models import RecordingType, Settings
from ..config.tools import resolve_adb_path, resolve_scrcpy_path
from ..device.bridge import AdbBridge
from ..errors import RecorderError
from ..reporting.artifacts import ArtifactLocation
from ..reporting.thumbnail import DEFAULT_THUMBNAIL_SIZE, make_thumbnail
from ..utils.logging import get_logger
from ..utils.platform import HostPlatform, get_host_platform
from .backends.base import RecorderBackend
from .backends.mirror import MirrorRecorder
from .backends.native import NativeRecorder
from .session import Session, SessionKey, SessionRegistry

DEFAULT_MIN_SDK = 22


class RecordingManager:
    """
    Starts and stops per-device, per-test screen recordings.

    `start_recording` takes a screenshot (thumbnailed to JPEG) and, when the
    device API level allows it, starts the configured backend and registers the
    session. `stop_recording` finalizes the session's video and returns its path.

    Files land in <dest_dir>/<test_class>/<test_method>/<device>.{jpg,mp4}.
    Methods are safe to call from several threads for different devices.
    """

    def __init__(
        self,
        bridge: AdbBridge,
        backend: RecorderBackend,
        dest_dir: str | Path,
        *,
        registry: SessionRegistry | None = None,
        min_sdk: int = DEFAULT_MIN_SDK,
        remote_dir: str = "/sdcard",
        thumbnail_size: int = DEFAULT_THUMBNAIL_SIZE,
    ) -> None:
        """
        Initialize RecordingManager.

        Args:
            bridge (AdbBridge): adb command bridge used for screenshots and API level queries.
            backend (RecorderBackend): Backend that records new sessions.
            dest_dir (str | Path): Root directory for artifacts.
            registry (SessionRegistry | None): Registry of active sessions; a new one if None.
            min_sdk (int): Lowest device API level that gets a video.
            remote_dir (str): Device directory for temporary screenshots.
            thumbnail_size (int): Max width/height of the JPEG screenshot.
        """
        self.bridge = bridge
        self.backend = backend
        self.dest_dir = Path(dest_dir)
        self.registry = registry or SessionRegistry()
        self.min_sdk = min_sdk
        self.remote_dir = remote_dir.rstrip("/")
        self.thumbnail_size = thumbnail_size
        self._log = get_logger(__name__)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        platform: HostPlatform | None = None,
        project_dir: str | Path | None = None,
        registry: SessionRegistry | None = None,
    ) -> RecordingManager:
        """
        Build a manager (bridge, backend, registry) from settings.

        Raises:
            ConfigurationError: If adb cannot be located.
        """
        adb_path = resolve_adb_path(settings.adb.path, project_dir)
        bridge = AdbBridge(adb_path, command_timeout=settings.adb.command_timeout_sec)

        backend: RecorderBackend
        if settings.recording_type is RecordingType.MIRROR:
            backend = MirrorRecorder(
                resolve_scrcpy_path(settings.mirror.path),
                platform or get_host_platform(settings.termination.interrupt_helper),
                settings.mirror,
                settings.termination,
            )
        else:
            backend = NativeRecorder(bridge, settings.native)

        return cls(
            bridge,
            backend,
            settings.reporting.dest_dir,
            registry=registry,
            min_sdk=settings.min_sdk,
            remote_dir=settings.native.remote_dir,
            thumbnail_size=settings.reporting.thumbnail_size,
        )

    def start_recording(self, device: str, test_class: str, test_method: str) -> Session | None:
        """
        Take a screenshot and start recording `device` for the given test.

        Returns:
            Session | None: The registered session, or None if the device API level
                is below `min_sdk` (the screenshot is still taken).

        Raises:
            ValueError: If any key part is empty.
            ConfigurationError: If the backend is not configured (nothing is spawned).
            ProcessLaunchError: If adb or the recording tool cannot be started.
            RecordingStartError: If the recording tool fails before recording begins.
        """
        key = SessionKey(device, test_class, test_method)
        log = self._log.bind(device=device, test_class=test_class, test_method=test_method)

        self.backend.validate()

        log.info("Starting recording", action="recording_start", backend=self.backend.kind.value)
        sdk = self.bridge.sdk_version(device)

        location = ArtifactLocation.resolve(self.dest_dir, test_class, test_method, device)
        self._take_screenshot(key, location)

        if sdk < self.min_sdk:
            log.warning(
                "Screen recording requires a newer API level; skipping video",
                action="recording_skipped",
                sdk=sdk,
                min_sdk=self.min_sdk,
            )
            return None

        session = self.backend.start_recording(key, location)
        self.registry.register(key, session)
        log.info(
            "Recording started",
            action="recording_started",
            pid=session.host_pid,
            video=str(session.video_path),
        )
        return session

    def stop_recording(self, device: str, test_class: str, test_method: str) -> Path:
        """
        Stop the recording for the key and return the finalized video path.

        The session is removed from the registry even if finishing fails.

        Raises:
            NoSuchRecordingError: If no recording was started for the key.
        """
        key = SessionKey(device, test_class, test_method)
        session = self.registry.get(key)
        log = self._log.bind(device=device, test_class=test_class, test_method=test_method)
        log.info("Stopping recording", action="recording_stop", backend=session.kind.value)

        try:
            path = session.recorder.finish_recording(session)
        finally:
            self.registry.remove(key, session)

        log.info(
            "Recording stopped",
            action="recording_stop",
            video=str(path),
            outcome=session.outcome.value if session.outcome else None,
        )
        return path

    def stop_all(self) -> dict[SessionKey, Path]:
        """Stop every active recording. Failures are logged and do not stop the others."""
        stopped: dict[SessionKey, Path] = {}
        for key in self.registry.keys():
            try:
                stopped[key] = self.stop_recording(key.device, key.test_class, key.test_method)
            except RecorderError as e:
                self._log.error("Failed to stop recording", key=str(key), error=str(e))
        return stopped

    def _take_screenshot(self, key: SessionKey, location: ArtifactLocation) -> None:
        remote = f"{self.remote_dir}/{key.test_class}-{key.test_method}.png"
        if self.bridge.screenshot(key.device, remote, location.raw_screenshot):
            make_thumbnail(location.raw_screenshot, location.screenshot, self.thumbnail_size)
            self._log.info(
                "Screenshot saved",
                action="screenshot",
                device=key.device,
                path=str(location.screenshot),
            )
        else:
            self._log.warning("Screenshot was not captured", action="screenshot", device=key.device)
