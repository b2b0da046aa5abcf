from lecture_mate.recording.errors import (
    DeviceUnavailable,
    InvalidStateTransition,
    PermissionDenied,
    RecorderError,
    TranscriptionTransientError,
    UnsupportedEnvironment,
)
from lecture_mate.recording.session import RecordingSession, SessionSnapshot, SessionState

__all__ = [
    "DeviceUnavailable",
    "InvalidStateTransition",
    "PermissionDenied",
    "RecorderError",
    "RecordingSession",
    "SessionSnapshot",
    "SessionState",
    "TranscriptionTransientError",
    "UnsupportedEnvironment",
]
