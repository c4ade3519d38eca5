from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import allure
import pytest

from ..config.loader import load_settings
from ..config.models import Settings
from ..recording.manager import RecordingManager
from ..reporting.artifacts import ArtifactLocation
from ..utils.logging import bind_context, clear_contextvars, get_logger, setup_logging
from .keys import recording_key

_logger = get_logger(__name__)


@pytest.fixture(scope="session")
def recorder_settings(pytestconfig: pytest.Config) -> Settings:
    """
    Load recorder configuration once per session.

    The configuration file can be overridden via --adbrecord-config <path>.
    """
    setup_logging()
    return load_settings(pytestconfig.getoption("--adbrecord-config"))


@pytest.fixture(scope="session")
def recording_manager(
    recorder_settings: Settings, pytestconfig: pytest.Config
) -> Generator[RecordingManager, None, None]:
    """
    Session-wide RecordingManager.

    Any recording still active at the end of the session is stopped so no
    recorder process outlives the test run.
    """
    manager = RecordingManager.from_settings(recorder_settings, project_dir=pytestconfig.rootpath)
    try:
        yield manager
    finally:
        stopped = manager.stop_all()
        if stopped:
            _logger.warning("Stopped recordings left running at session end", count=len(stopped))


@pytest.fixture(scope="session")
def recording_device(pytestconfig: pytest.Config, recording_manager: RecordingManager) -> str:
    """Device to record: --adbrecord-device, or the first device reported by adb."""
    explicit: str | None = pytestconfig.getoption("--adbrecord-device")
    if explicit:
        return explicit
    devices = recording_manager.bridge.list_devices()
    if not devices:
        pytest.skip("No attached Android device to record")
    return devices[0]


def _attach(path: Path, name: str, attachment_type: object) -> None:
    if path.exists():
        allure.attach.file(str(path), name=name, attachment_type=attachment_type)


@pytest.fixture(autouse=True)
def screen_recording(request: pytest.FixtureRequest) -> Generator[Path | None, None, None]:
    """
    Record the device screen for the duration of each test when --adbrecord is given.

    Yields the path the video will be written to, or None when not recording.
    The JPEG screenshot and the MP4 are attached to Allure afterwards.
    """
    if not request.config.getoption("--adbrecord"):
        yield None
        return

    manager: RecordingManager = request.getfixturevalue("recording_manager")
    device: str = request.getfixturevalue("recording_device")
    settings: Settings = request.getfixturevalue("recorder_settings")
    test_class, test_method = recording_key(request.node)

    bind_context(device=device, test_class=test_class, test_method=test_method)
    with allure.step(f"Start screen recording on {device}"):
        session = manager.start_recording(device, test_class, test_method)

    video: Path | None = None
    try:
        yield session.video_path if session is not None else None
    finally:
        try:
            if session is not None:
                with allure.step(f"Stop screen recording on {device}"):
                    video = manager.stop_recording(device, test_class, test_method)
            if settings.reporting.attach_to_allure:
                location = ArtifactLocation(manager.dest_dir / test_class / test_method, device)
                _attach(location.screenshot, "screenshot", allure.attachment_type.JPG)
                if video is not None:
                    _attach(video, "screen recording", allure.attachment_type.MP4)
        finally:
            clear_contextvars()
