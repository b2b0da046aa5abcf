"""Recorder error taxonomy.

``retryable`` tells a caller whether asking the user to try again can help.
"""


class RecorderError(Exception):
    code = "recorder_error"
    retryable = False


class PermissionDenied(RecorderError):
    """Microphone access was refused by the user or the OS."""

    code = "permission_denied"
    retryable = True


class DeviceUnavailable(RecorderError):
    """No usable input device."""

    code = "device_unavailable"


class UnsupportedEnvironment(RecorderError):
    """The host cannot run speech recognition at all."""

    code = "unsupported_environment"


class TranscriptionTransientError(RecorderError):
    code = "transcription_transient"
    retryable = True


class InvalidStateTransition(RecorderError):
    code = "invalid_state_transition"

    def __init__(self, action: str, state: str) -> None:
        super().__init__(f"Cannot {action} while {state}")
        self.action = action
        self.state = state
