import logging
import os
import threading
from contextlib import ExitStack
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from lecture_mate.config import Settings
from lecture_mate.models import Highlight, Importance, Lecture, TranscriptSegment
from lecture_mate.recording.assembler import assemble_lecture, new_id
from lecture_mate.recording.capture import MicrophoneCapture
from lecture_mate.recording.errors import InvalidStateTransition
from lecture_mate.recording.events import (
    Event,
    FinalText,
    InterimText,
    LevelSample,
    SourceEnded,
    Tick,
    TranscriptionError,
)
from lecture_mate.recording.level_monitor import AudioLevelMonitor
from lecture_mate.recording.scheduler import ScheduledJob, ThreadScheduler
from lecture_mate.recording.transcription import (
    TranscriptionSource,
    UtteranceBuffer,
    WhisperTranscriptionSource,
)
from lecture_mate.services.highlights import HighlightConfig, classify

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    PAUSED = "paused"
    STOPPED = "stopped"


@dataclass(frozen=True)
class SessionSnapshot:
    id: str
    state: SessionState
    duration: int
    transcript: tuple[TranscriptSegment, ...]
    highlights: tuple[Highlight, ...]
    interim_text: str
    audio_level: float
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "state": self.state.value,
            "duration": self.duration,
            "transcript": [s.to_dict() for s in self.transcript],
            "highlights": [h.to_dict() for h in self.highlights],
            "interim_text": self.interim_text,
            "audio_level": self.audio_level,
            "error": self.error,
        }


class RecordingSession:
    """Idle → Recording ⇄ Paused → Stopped, for one lecture.

    The microphone, transcription engine and clock are injected so tests can
    substitute fakes. Every state change goes through ``handle()`` (inbound
    events) or a lifecycle method, both serialized on ``_lock``; lifecycle
    methods also hold ``_lifecycle`` and never join worker threads while
    holding ``_lock``, because those workers call ``handle()``.

    Illegal lifecycle calls always raise ``InvalidStateTransition`` and leave
    the session untouched.
    """

    def __init__(
        self,
        capture,
        source: TranscriptionSource,
        scheduler: ThreadScheduler,
        monitor: AudioLevelMonitor | None = None,
        config: HighlightConfig | None = None,
        session_id: str | None = None,
        title_prefix: str = "강의",
        tick_interval: float = 1.0,
    ) -> None:
        self.id = session_id or new_id("lec")
        self.capture = capture
        self.source = source
        self.scheduler = scheduler
        self.monitor = monitor or AudioLevelMonitor(capture, scheduler)
        self.config = config or HighlightConfig()
        self.title_prefix = title_prefix
        self.tick_interval = tick_interval

        self._lock = threading.RLock()
        self._lifecycle = threading.Lock()

        self._state = SessionState.IDLE
        self._duration = 0
        self._transcript: list[TranscriptSegment] = []
        self._highlights: list[Highlight] = []
        self._interim_text = ""
        self._audio_level = 0.0
        self._error: str | None = None
        self._source_failed = False

        self._ticker: ScheduledJob | None = None
        self._resources: ExitStack | None = None
        self._lecture: Lecture | None = None

        self._listeners: list[Callable[[dict], None]] = []
        self._lecture_sinks: list[Callable[[Lecture], None]] = []

    @classmethod
    def from_settings(cls, settings: Settings) -> "RecordingSession":
        """Wire a session to the real microphone, Whisper and thread clock."""
        session_id = new_id("lec")
        archive_path = (
            os.path.join(settings.audio_dir, f"{session_id}.wav")
            if settings.audio_dir
            else None
        )
        capture = MicrophoneCapture(
            sample_rate=settings.sample_rate,
            block_size=settings.block_size,
            device=settings.input_device,
            archive_path=archive_path,
        )
        buffer = UtteranceBuffer(
            sample_rate=settings.sample_rate,
            silence_threshold=settings.silence_threshold,
            end_silence=settings.end_silence_seconds,
            max_utterance=settings.max_utterance_seconds,
            interim_interval=settings.interim_interval_seconds,
        )
        scheduler = ThreadScheduler()
        monitor = AudioLevelMonitor(
            capture,
            scheduler,
            interval=settings.level_sample_interval,
            fft_size=settings.level_fft_size,
            min_db=settings.level_min_db,
            max_db=settings.level_max_db,
        )
        return cls(
            capture=capture,
            source=WhisperTranscriptionSource(capture, buffer=buffer),
            scheduler=scheduler,
            monitor=monitor,
            config=HighlightConfig.from_settings(settings),
            session_id=session_id,
            title_prefix=settings.default_title_prefix,
        )

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, fn: Callable[[dict], None]) -> None:
        """Register a live-update callback.

        ``fn`` is invoked from whichever thread applied the change and
        receives one of::

            {"type": "status", "state": str}
            {"type": "duration", "duration": int}
            {"type": "level", "level": float}
            {"type": "interim", "text": str}
            {"type": "segment", "segment": {...}}
            {"type": "highlight", "highlight": {...}}
            {"type": "error", "message": str}
        """
        self._listeners.append(fn)

    def on_lecture_ready(self, fn: Callable[[Lecture], None]) -> None:
        """Register the collaborator that receives the lecture on ``stop()``."""
        self._lecture_sinks.append(fn)

    def _notify(self, message: dict) -> None:
        for fn in self._listeners:
            try:
                fn(message)
            except Exception:
                logger.warning("Session listener failed on %s", message["type"], exc_info=True)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def duration(self) -> int:
        with self._lock:
            return self._duration

    @property
    def transcript(self) -> tuple[TranscriptSegment, ...]:
        with self._lock:
            return tuple(self._transcript)

    @property
    def highlights(self) -> tuple[Highlight, ...]:
        with self._lock:
            return tuple(self._highlights)

    @property
    def interim_text(self) -> str:
        with self._lock:
            return self._interim_text

    @property
    def audio_level(self) -> float:
        with self._lock:
            return self._audio_level

    @property
    def lecture(self) -> Lecture | None:
        return self._lecture

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return SessionSnapshot(
                id=self.id,
                state=self._state,
                duration=self._duration,
                transcript=tuple(self._transcript),
                highlights=tuple(self._highlights),
                interim_text=self._interim_text,
                audio_level=self._audio_level,
                error=self._error,
            )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def check_environment(self) -> None:
        """Raise ``UnsupportedEnvironment`` if transcription cannot run."""
        self.source.probe()

    def start(self) -> None:
        with self._lifecycle:
            self._require("start", SessionState.IDLE)
            self.check_environment()

            stack = ExitStack()
            try:
                self.capture.open()
                stack.callback(self.capture.close)
                stack.callback(self.source.close)
                stack.callback(self._cancel_jobs)
                self._run_components()
            except Exception:
                stack.close()
                raise
            self._resources = stack

            with self._lock:
                self._state = SessionState.RECORDING
            logger.info("Recording %s started", self.id)
            self._notify({"type": "status", "state": SessionState.RECORDING.value})

    def pause(self) -> None:
        with self._lifecycle:
            with self._lock:
                self._require("pause", SessionState.RECORDING)
                self._state = SessionState.PAUSED
                self._interim_text = ""
            self._cancel_jobs()
            self.source.stop()
            self.capture.pause()
            logger.info("Recording %s paused at %ds", self.id, self.duration)
            self._notify({"type": "status", "state": SessionState.PAUSED.value})

    def resume(self) -> None:
        with self._lifecycle:
            self._require("resume", SessionState.PAUSED)
            self.capture.resume()
            try:
                self._run_components()
            except Exception:
                self._cancel_jobs()
                self.source.stop()
                self.capture.pause()
                raise
            with self._lock:
                self._state = SessionState.RECORDING
            logger.info("Recording %s resumed at %ds", self.id, self.duration)
            self._notify({"type": "status", "state": SessionState.RECORDING.value})

    def stop(self, title: str | None = None, presenter: str | None = None) -> Lecture:
        """Stop for good and return the assembled lecture.

        Interim text is discarded, never finalized. The lecture is handed to
        every ``on_lecture_ready`` sink before being returned.
        """
        with self._lifecycle:
            with self._lock:
                self._require("stop", SessionState.RECORDING, SessionState.PAUSED)
                self._state = SessionState.STOPPED
                self._interim_text = ""
                duration = self._duration
                transcript = tuple(self._transcript)
                highlights = tuple(self._highlights)
            self._release()

            lecture = assemble_lecture(
                self.id,
                duration,
                transcript,
                highlights,
                title=title,
                presenter=presenter,
                title_prefix=self.title_prefix,
            )
            self._lecture = lecture
            logger.info(
                "Recording %s stopped: %ds, %d segments, %d highlights",
                self.id, duration, len(transcript), len(highlights),
            )
            self._notify({"type": "status", "state": SessionState.STOPPED.value})

            for sink in self._lecture_sinks:
                try:
                    sink(lecture)
                except Exception:
                    logger.exception("Lecture sink failed for %s", lecture.id)
            return lecture

    def dispose(self) -> None:
        """Release every resource, whatever state the session is in."""
        with self._lifecycle:
            with self._lock:
                self._state = SessionState.STOPPED
                self._interim_text = ""
            self._release()

    def __enter__(self) -> "RecordingSession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.dispose()

    def _require(self, action: str, *allowed: SessionState) -> None:
        with self._lock:
            if self._state not in allowed:
                raise InvalidStateTransition(action, self._state.value)

    def _run_components(self) -> None:
        with self._lock:
            self._source_failed = False
        self.source.start(self.handle)
        self.monitor.start(self._on_level)
        self._ticker = self.scheduler.every(self.tick_interval, self._on_tick, name="duration")

    def _cancel_jobs(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None
        self.monitor.stop()

    def _release(self) -> None:
        stack, self._resources = self._resources, None
        if stack is not None:
            stack.close()

    def _on_tick(self) -> None:
        self.handle(Tick())

    def _on_level(self, level: float) -> None:
        self.handle(LevelSample(level))

    # ------------------------------------------------------------------
    # Event step function
    # ------------------------------------------------------------------

    def handle(self, event: Event) -> None:
        """Apply one inbound event. Safe to call from any thread."""
        with self._lock:
            if isinstance(event, TranscriptionError):
                self._on_transcription_error(event)
            elif self._state is not SessionState.RECORDING:
                # late callbacks after pause/stop are dropped
                return
            elif isinstance(event, Tick):
                self._duration += 1
                self._notify({"type": "duration", "duration": self._duration})
            elif isinstance(event, LevelSample):
                self._audio_level = min(max(float(event.level), 0.0), 100.0)
                self._notify({"type": "level", "level": self._audio_level})
            elif isinstance(event, InterimText):
                self._interim_text = event.text
                self._notify({"type": "interim", "text": event.text})
            elif isinstance(event, FinalText):
                self._finalize(event.text)
            elif isinstance(event, SourceEnded):
                self._restart_source()

    def _finalize(self, text: str) -> None:
        if text.strip():
            result = classify(text, self._audio_level, self.config)
            segment = TranscriptSegment(
                id=new_id("seg"),
                timestamp=self._duration,
                text=text,
                is_highlight=result.is_highlight,
            )
            self._transcript.append(segment)
            logger.debug("Segment at %ds (highlight=%s): %s", segment.timestamp, segment.is_highlight, text)
            self._notify({"type": "segment", "segment": segment.to_dict()})

            if result.is_highlight:
                highlight = Highlight(
                    id=new_id("hl"),
                    timestamp=segment.timestamp,
                    text=text,
                    summary=result.summary,
                    keywords=result.keywords,
                    importance=Importance.HIGH,
                )
                self._highlights.append(highlight)
                self._notify({"type": "highlight", "highlight": highlight.to_dict()})

        self._interim_text = ""
        self._notify({"type": "interim", "text": ""})

    def _on_transcription_error(self, event: TranscriptionError) -> None:
        if not event.fatal:
            logger.debug("Transient transcription error: %s", event.message)
            return
        logger.error("Transcription failed: %s", event.message)
        self._source_failed = True
        self._error = event.message
        self._notify({"type": "error", "message": event.message})

    def _restart_source(self) -> None:
        if self._source_failed:
            return
        logger.warning("Transcription source ended while recording; restarting")
        try:
            self.source.start(self.handle)
        except Exception as e:
            logger.exception("Could not restart transcription")
            self._source_failed = True
            self._error = f"Could not restart transcription: {e}"
            self._notify({"type": "error", "message": self._error})
