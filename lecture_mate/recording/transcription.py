import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable

import numpy as np

from lecture_mate.recording.audio_utils import block_rms
from lecture_mate.recording.errors import (
    DeviceUnavailable,
    PermissionDenied,
    TranscriptionTransientError,
    UnsupportedEnvironment,
)
from lecture_mate.recording.events import (
    Event,
    FinalText,
    InterimText,
    SourceEnded,
    TranscriptionError,
)
from lecture_mate.services.transcription import WhisperService

logger = logging.getLogger(__name__)

Emit = Callable[[Event], None]

INTERIM = "interim"
FINAL = "final"


class TranscriptionSource(ABC):
    """Continuous speech-to-text feeding a recording session.

    Per utterance a source emits zero or more ``InterimText`` events followed
    by exactly one ``FinalText``, in utterance order. Recoverable problems
    are reported as ``TranscriptionError(fatal=False)`` and emission goes
    on; a fatal problem is reported with ``fatal=True`` and emission stops.
    ``SourceEnded`` is emitted whenever the engine stops on its own or is
    stopped; the session decides whether to restart it.
    """

    def probe(self) -> None:
        """Raise ``UnsupportedEnvironment`` if transcription cannot run here."""

    @abstractmethod
    def start(self, emit: Emit) -> None:
        ...

    @abstractmethod
    def stop(self) -> None:
        """Stop emitting; the source can be started again."""
        ...

    def close(self) -> None:
        self.stop()


# ------------------------------------------------------------------
# Utterance segmentation
# ------------------------------------------------------------------


class UtteranceBuffer:
    """Energy-based utterance segmentation over captured blocks.

    ``push`` returns ``"interim"`` every ``interim_interval`` seconds of a
    growing utterance, ``"final"`` once ``end_silence`` seconds of trailing
    silence (or ``max_utterance`` seconds of audio) have accumulated, and
    None otherwise. Leading silence is never buffered.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        silence_threshold: float = 0.01,
        end_silence: float = 0.8,
        max_utterance: float = 15.0,
        interim_interval: float = 1.5,
    ) -> None:
        self.sample_rate = sample_rate
        self.silence_threshold = silence_threshold
        self._end_silence_samples = int(end_silence * sample_rate)
        self._max_samples = int(max_utterance * sample_rate)
        self._interim_samples = int(interim_interval * sample_rate)

        self._blocks: list[np.ndarray] = []
        self._samples = 0
        self._silent_samples = 0
        self._last_interim = 0

    @property
    def duration(self) -> float:
        return self._samples / self.sample_rate

    def push(self, block: np.ndarray) -> str | None:
        is_speech = block_rms(block) >= self.silence_threshold
        if not self._blocks and not is_speech:
            return None

        self._blocks.append(block)
        self._samples += len(block)
        self._silent_samples = 0 if is_speech else self._silent_samples + len(block)

        if self._silent_samples >= self._end_silence_samples:
            return FINAL
        if self._samples >= self._max_samples:
            return FINAL
        if self._samples - self._last_interim >= self._interim_samples:
            self._last_interim = self._samples
            return INTERIM
        return None

    def audio(self) -> np.ndarray:
        if not self._blocks:
            return np.zeros(0, dtype=np.float32)
        return np.concatenate(self._blocks).flatten()

    def clear(self) -> None:
        self._blocks = []
        self._samples = 0
        self._silent_samples = 0
        self._last_interim = 0


# ------------------------------------------------------------------
# Whisper-backed source
# ------------------------------------------------------------------


class WhisperTranscriptionSource(TranscriptionSource):
    """Transcribes utterances from a ``MicrophoneCapture`` with faster-whisper.

    A daemon worker thread pulls blocks from the capture, segments them with
    an ``UtteranceBuffer`` and transcribes the partial utterance for interim
    events and the full utterance for the final event.
    """

    def __init__(
        self,
        capture,
        buffer: UtteranceBuffer | None = None,
        transcriber_factory: Callable[[], WhisperService] = WhisperService.get,
    ) -> None:
        self.capture = capture
        self.buffer = buffer or UtteranceBuffer(sample_rate=capture.sample_rate)
        self._transcriber_factory = transcriber_factory

        self._lock = threading.Lock()
        self._stop_event: threading.Event | None = None
        self._thread: threading.Thread | None = None

    def probe(self) -> None:
        try:
            self._transcriber_factory()
        except (RuntimeError, OSError, ValueError) as e:
            raise UnsupportedEnvironment(f"Speech recognition unavailable: {e}") from e

    def start(self, emit: Emit) -> None:
        with self._lock:
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run,
                args=(stop_event, emit),
                name="lecture-mate-transcription",
                daemon=True,
            )
            self._stop_event = stop_event
            self._thread = thread
        thread.start()

    def stop(self) -> None:
        with self._lock:
            stop_event, thread = self._stop_event, self._thread
            self._stop_event = self._thread = None
        if stop_event is not None:
            stop_event.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        self.buffer.clear()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # ------------------------------------------------------------------
    # Worker loop (daemon thread)
    # ------------------------------------------------------------------

    def _run(self, stop_event: threading.Event, emit: Emit) -> None:
        try:
            while not stop_event.is_set():
                block = self.capture.read_block(timeout=0.25)
                if block is None:
                    continue
                self._process(block, emit, stop_event)
        except (PermissionDenied, DeviceUnavailable) as e:
            logger.error("Transcription stopped: %s", e)
            emit(TranscriptionError(str(e), fatal=True))
        except Exception:
            logger.exception("Transcription worker crashed")
        finally:
            emit(SourceEnded())

    def _process(self, block: np.ndarray, emit: Emit, stop_event: threading.Event) -> None:
        action = self.buffer.push(block)
        if action is None:
            return

        try:
            text = self._transcribe(self.buffer.audio())
        except TranscriptionTransientError as e:
            emit(TranscriptionError(str(e)))
            text = ""

        if action == FINAL:
            self.buffer.clear()
        # A stop that raced the transcription discards the result
        if not text or stop_event.is_set():
            return
        emit(FinalText(text) if action == FINAL else InterimText(text))

    def _transcribe(self, samples: np.ndarray) -> str:
        try:
            return self._transcriber_factory().transcribe(samples)
        except (RuntimeError, ValueError, OSError) as e:
            logger.debug("Transient transcription failure: %s", e)
            raise TranscriptionTransientError(str(e)) from e
