from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import ClassVar

from ...config.models import RecordingType
from ...reporting.artifacts import ArtifactLocation
from ..session import Session, SessionKey


class RecorderBackend(ABC):
    """
    Abstract base class for recording backends.

    A backend starts the process(es) that record one device for one test and,
    on finish, stops them and makes sure the video ends up at the session's
    `video_path`.
    """

    kind: ClassVar[RecordingType]

    def validate(self) -> None:
        """
        Check that the backend is usable before anything is spawned.

        Raises:
            ConfigurationError: If required configuration is missing.
        """
        return None

    @abstractmethod
    def start_recording(self, key: SessionKey, location: ArtifactLocation) -> Session:
        """
        Start recording `key.device` into `location.video`.

        Returns:
            Session: The live session owning the spawned process.
        """
        ...

    @abstractmethod
    def finish_recording(self, session: Session) -> Path:
        """
        Stop the recording and finalize the video file.

        Timeouts while stopping are not fatal: the path is returned anyway and
        `session.outcome` says whether the stop was confirmed.
        """
        ...
