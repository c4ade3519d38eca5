from __future__ import annotations

from pathlib import Path
from textwrap import dedent

import pytest

from adbrecord.config import tools
from adbrecord.config.loader import load_settings
from adbrecord.config.models import RecordingType, Settings
from adbrecord.errors import ConfigurationError
from adbrecord.platform import HostOS


def test_load_settings_yaml_and_env_override(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """
    Settings are loaded from YAML and environment variables take precedence.
    """
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text(
        dedent(
            """
            recording_type: mirror
            min_sdk: 23
            mirror:
              path: /opt/scrcpy/scrcpy
              bitrate: 4M
            reporting:
              dest_dir: out/recordings
            """
        ),
        encoding="utf-8",
    )

    monkeypatch.setenv("ADBRECORD_RECORDING_TYPE", "native")
    monkeypatch.setenv("ADBRECORD_NATIVE__PULL_TIMEOUT_SEC", "90")

    s: Settings = load_settings(str(cfg))

    assert s.recording_type is RecordingType.NATIVE  # env overrides YAML
    assert s.min_sdk == 23
    assert s.mirror.path == "/opt/scrcpy/scrcpy"
    assert s.mirror.bitrate == "4M"
    assert s.native.pull_timeout_sec == 90
    assert s.reporting.dest_dir == "out/recordings"


def test_defaults_when_file_is_missing(tmp_path: Path) -> None:
    s = load_settings(str(tmp_path / "missing.yaml"))
    assert s.recording_type is RecordingType.NATIVE
    assert s.min_sdk == 22
    assert s.mirror.startup_marker == "INFO: Recording started"
    assert s.mirror.settle_delay_sec == 5
    assert s.termination.pid_lookup_attempts == 5
    assert s.termination.pid_lookup_interval_sec == 0.5
    assert s.termination.interrupt_attempts == 5
    assert s.termination.interrupt_backoff_sec == 2
    assert s.native.exit_timeout_sec == 20
    assert s.native.pull_timeout_sec == 60
    assert s.native.cleanup_timeout_sec == 60
    assert s.mirror.exit_timeout_sec == 60


@pytest.fixture
def posix_host(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(tools, "current_host_os", lambda: HostOS.POSIX)


def test_resolve_adb_path_prefers_explicit(tmp_path: Path) -> None:
    adb = tmp_path / "adb"
    adb.write_text("", encoding="utf-8")
    assert tools.resolve_adb_path(str(adb)) == str(adb)


def test_resolve_adb_path_from_local_properties(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, posix_host: None
) -> None:
    sdk = tmp_path / "sdk"
    (sdk / "platform-tools").mkdir(parents=True)
    (sdk / "platform-tools" / "adb").write_text("", encoding="utf-8")
    (tmp_path / "local.properties").write_text(
        f"# generated\nsdk.dir={sdk}\n", encoding="utf-8"
    )
    monkeypatch.delenv("ANDROID_HOME", raising=False)

    assert tools.resolve_adb_path(None, tmp_path) == str(sdk / "platform-tools" / "adb")


def test_resolve_adb_path_from_android_home(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, posix_host: None
) -> None:
    (tmp_path / "platform-tools").mkdir()
    (tmp_path / "platform-tools" / "adb").write_text("", encoding="utf-8")
    monkeypatch.setenv("ANDROID_HOME", str(tmp_path))

    assert tools.resolve_adb_path(None, None) == str(tmp_path / "platform-tools" / "adb")


def test_resolve_adb_path_not_found(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("ANDROID_HOME", raising=False)
    monkeypatch.setattr(tools.shutil, "which", lambda _cmd: None)
    with pytest.raises(ConfigurationError):
        tools.resolve_adb_path(None, tmp_path)


def test_resolve_adb_path_invalid_explicit(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        tools.resolve_adb_path(str(tmp_path / "nope" / "adb"))


def test_read_sdk_dir_unescapes_windows_paths(tmp_path: Path) -> None:
    props = tmp_path / "local.properties"
    props.write_text("sdk.dir=C\\:\\\\Users\\\\me\\\\Android\\\\Sdk\n", encoding="utf-8")
    assert tools.read_sdk_dir(props) == "C:\\Users\\me\\Android\\Sdk"


def test_resolve_scrcpy_path(monkeypatch: pytest.MonkeyPatch, posix_host: None) -> None:
    assert tools.resolve_scrcpy_path("/usr/local/bin/scrcpy") == "/usr/local/bin/scrcpy"
    monkeypatch.setattr(tools.shutil, "which", lambda cmd: f"/usr/bin/{cmd}")
    assert tools.resolve_scrcpy_path(None) == "/usr/bin/scrcpy"
