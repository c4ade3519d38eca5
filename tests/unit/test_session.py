from __future__ import annotations

import threading
from pathlib import Path
from typing import Any

import pytest

from adbrecord.config.models import RecordingType
from adbrecord.errors import NoSuchRecordingError
from adbrecord.recording.session import Session, SessionKey, SessionRegistry


def _session(key: SessionKey, pid: int = 1) -> Session:
    return Session(
        key=key,
        kind=RecordingType.NATIVE,
        recorder=object(),  # type: ignore[arg-type]
        process=object(),  # type: ignore[arg-type]
        video_path=Path(f"/tmp/{key.device}.mp4"),
        host_pid=pid,
    )


def test_session_key_rejects_empty_parts() -> None:
    with pytest.raises(ValueError):
        SessionKey("", "C", "m")
    with pytest.raises(ValueError):
        SessionKey("dev", "C", "")


def test_session_key_is_case_sensitive_value() -> None:
    assert SessionKey("dev", "C", "m") == SessionKey("dev", "C", "m")
    assert SessionKey("dev", "C", "m") != SessionKey("dev", "c", "m")
    assert str(SessionKey("dev", "C", "m")) == "dev:C.m"


def test_get_unknown_key_raises_no_such_recording() -> None:
    reg = SessionRegistry()
    key = SessionKey("dev", "C", "m")

    with pytest.raises(NoSuchRecordingError) as ei:
        reg.get(key)

    assert "no such recording" in str(ei.value)
    assert ei.value.key == key
    # Also usable as a LookupError
    assert isinstance(ei.value, LookupError)


def test_register_replaces_and_returns_previous() -> None:
    reg = SessionRegistry()
    key = SessionKey("dev", "C", "m")
    first, second = _session(key, 1), _session(key, 2)

    assert reg.register(key, first) is None
    assert reg.register(key, second) is first
    assert reg.get(key) is second
    assert len(reg) == 1


def test_remove_is_identity_guarded() -> None:
    reg = SessionRegistry()
    key = SessionKey("dev", "C", "m")
    old, new = _session(key, 1), _session(key, 2)
    reg.register(key, new)

    assert reg.remove(key, old) is None
    assert key in reg

    assert reg.remove(key, new) is new
    assert key not in reg
    assert reg.remove(key) is None


def test_concurrent_register_and_remove_for_many_devices() -> None:
    reg = SessionRegistry()
    keys = [SessionKey(f"dev-{i}", "C", "m") for i in range(32)]
    barrier = threading.Barrier(len(keys))
    errors: list[Any] = []

    def worker(key: SessionKey) -> None:
        try:
            barrier.wait()
            s = _session(key)
            reg.register(key, s)
            assert reg.get(key) is s
            assert reg.remove(key, s) is s
        except Exception as e:  # collected and asserted below
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(k,)) for k in keys]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(reg) == 0
