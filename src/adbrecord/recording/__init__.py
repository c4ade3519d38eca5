from .backends.base import RecorderBackend
from .backends.mirror import MirrorRecorder
from .backends.native import NativeRecorder
from .manager import RecordingManager
from .pid import PidResolver
from .session import Session, SessionKey, SessionRegistry
from .termination import TerminationOutcome, TerminationProtocol

__all__ = [
    "RecorderBackend",
    "MirrorRecorder",
    "NativeRecorder",
    "RecordingManager",
    "PidResolver",
    "Session",
    "SessionKey",
    "SessionRegistry",
    "TerminationOutcome",
    "TerminationProtocol",
]
