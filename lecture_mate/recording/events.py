"""Inbound events consumed by ``RecordingSession.handle``.

Timer ticks, level samples and transcription callbacks all arrive as one of
these values so that a single step function applies every state change.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Tick:
    """One elapsed second of recording."""


@dataclass(frozen=True)
class LevelSample:
    level: float  # 0-100


@dataclass(frozen=True)
class InterimText:
    text: str


@dataclass(frozen=True)
class FinalText:
    text: str


@dataclass(frozen=True)
class TranscriptionError:
    message: str
    fatal: bool = False


@dataclass(frozen=True)
class SourceEnded:
    """The transcription engine stopped emitting."""


Event = Tick | LevelSample | InterimText | FinalText | TranscriptionError | SourceEnded
