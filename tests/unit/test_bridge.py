from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Any

import pytest

from adbrecord.device import bridge as bridge_mod
from adbrecord.device.bridge import AdbBridge, parse_devices
from adbrecord.errors import DeviceBridgeError
from adbrecord.utils.cli import Completed


def _done(out: str = "", rc: int = 0, err: str = "") -> Completed:
    return Completed(subprocess.CompletedProcess(["adb"], rc, out, err))


def test_parse_devices_keeps_ready_devices_only() -> None:
    text = (
        "* daemon not running; starting now at tcp:5037\n"
        "* daemon started successfully\n"
        "List of devices attached\n"
        "emulator-5554\tdevice\n"
        "R58M123ABC\tunauthorized\n"
        "192.168.1.20:5555\tdevice product:x model:y\n"
        "0123456789\toffline\n"
        "\n"
    )
    assert parse_devices(text) == ["emulator-5554", "192.168.1.20:5555"]


def test_command_is_addressed_to_device() -> None:
    assert AdbBridge("/sdk/adb").command("dev1", "shell", "ls") == [
        "/sdk/adb",
        "-s",
        "dev1",
        "shell",
        "ls",
    ]


def test_sdk_version(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[tuple[list[str], dict[str, Any]]] = []

    def fake_run_cmd(args: list[str], **kw: Any) -> Completed:
        calls.append((list(args), kw))
        return _done("30\r\n")

    monkeypatch.setattr(bridge_mod, "run_cmd", fake_run_cmd)

    assert AdbBridge("adb", command_timeout=7).sdk_version("dev1") == 30
    args, kw = calls[0]
    assert args == ["adb", "-s", "dev1", "shell", "getprop", "ro.build.version.sdk"]
    assert kw["timeout"] == 7


def test_sdk_version_garbage_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        bridge_mod, "run_cmd", lambda args, **kw: _done("", 1, "error: device offline")
    )
    with pytest.raises(DeviceBridgeError, match="device offline"):
        AdbBridge().sdk_version("dev1")


def test_pull_uses_absolute_local_path(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    seen: list[list[str]] = []
    monkeypatch.setattr(bridge_mod, "run_cmd", lambda args, **kw: seen.append(args) or _done())
    monkeypatch.chdir(tmp_path)

    AdbBridge().pull("dev1", "/sdcard/a.mp4", Path("out/a.mp4"))

    assert seen[0][-1] == str(tmp_path / "out" / "a.mp4")


def test_screenshot_timeout_is_logged_not_raised(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    def slow(args: list[str], **kw: Any) -> Completed:
        raise subprocess.TimeoutExpired(args, kw.get("timeout") or 0)

    monkeypatch.setattr(bridge_mod, "run_cmd", slow)

    assert AdbBridge().screenshot("dev1", "/sdcard/x.png", tmp_path / "x.png") is False


def test_screenshot_runs_capture_pull_remove(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    seen: list[list[str]] = []
    local = tmp_path / "dev1.png"

    def fake_run_cmd(args: list[str], **kw: Any) -> Completed:
        seen.append(list(args))
        if "pull" in args:
            local.write_bytes(b"png")
        return _done()

    monkeypatch.setattr(bridge_mod, "run_cmd", fake_run_cmd)

    assert AdbBridge("adb").screenshot("dev1", "/sdcard/C-m.png", local) is True
    assert [a[3:] for a in seen] == [
        ["shell", "screencap", "/sdcard/C-m.png"],
        ["pull", "/sdcard/C-m.png", str(local.absolute())],
        ["shell", "rm", "/sdcard/C-m.png"],
    ]
