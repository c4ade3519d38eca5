from __future__ import annotations

import subprocess
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ..config.models import RecordingType
from ..errors import NoSuchRecordingError
from ..utils.logging import get_logger

if TYPE_CHECKING:
    from .backends.base import RecorderBackend
    from .termination import TerminationOutcome

_log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class SessionKey:
    """Identity of a recording: device serial, test class and test method (case-sensitive)."""

    device: str
    test_class: str
    test_method: str

    def __post_init__(self) -> None:
        for name in ("device", "test_class", "test_method"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value:
                raise ValueError(f"{name} must be a non-empty string, got {value!r}")

    def __str__(self) -> str:
        return f"{self.device}:{self.test_class}.{self.test_method}"


@dataclass(slots=True)
class Session:
    """
    Live state of one in-progress recording.

    `host_pid` is only set when the recorder runs on the host (mirror backend);
    for the native backend the recorder lives on the device and there is nothing
    on the host to signal apart from the adb bridge process.
    """

    key: SessionKey
    kind: RecordingType
    recorder: RecorderBackend
    process: subprocess.Popen[Any]
    video_path: Path
    host_pid: int | None = None
    remote_path: str | None = None
    started_at: float = field(default_factory=time.time)
    outcome: TerminationOutcome | None = None


class SessionRegistry:
    """
    Thread-safe map of active recordings, one per SessionKey.

    Sessions for different devices start and stop concurrently, so every
    operation is serialized under a single lock.
    """

    def __init__(self) -> None:
        self._sessions: dict[SessionKey, Session] = {}
        self._lock = threading.RLock()

    def register(self, key: SessionKey, session: Session) -> Session | None:
        """
        Store `session` under `key`.

        An existing session for the same key is replaced without being stopped;
        it is returned so the caller can see what was abandoned.
        """
        with self._lock:
            previous = self._sessions.get(key)
            self._sessions[key] = session
        if previous is not None and previous is not session:
            _log.warning(
                "Recording replaced without stop; previous process abandoned",
                action="session_abandoned",
                key=str(key),
                pid=previous.host_pid or getattr(previous.process, "pid", None),
            )
        return previous

    def get(self, key: SessionKey) -> Session:
        """
        Raises:
            NoSuchRecordingError: If no session is registered for `key`.
        """
        with self._lock:
            session = self._sessions.get(key)
        if session is None:
            raise NoSuchRecordingError(key)
        return session

    def remove(self, key: SessionKey, session: Session | None = None) -> Session | None:
        """
        Drop the session for `key`. If `session` is given, only drop it when it is
        still the registered one (a newer start for the same key is kept).
        """
        with self._lock:
            current = self._sessions.get(key)
            if current is None or (session is not None and current is not session):
                return None
            return self._sessions.pop(key)

    def keys(self) -> list[SessionKey]:
        with self._lock:
            return list(self._sessions)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
