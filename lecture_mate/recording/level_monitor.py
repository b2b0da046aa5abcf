from typing import Callable

from lecture_mate.recording.audio_utils import spectrum_level
from lecture_mate.recording.scheduler import ScheduledJob, ThreadScheduler


class AudioLevelMonitor:
    """Continuously samples microphone loudness while recording.

    Only the latest value is kept. Sampling runs between ``start()`` and
    ``stop()``; the session stops it on pause and stop.
    """

    def __init__(
        self,
        capture,
        scheduler: ThreadScheduler,
        interval: float = 1 / 30,
        fft_size: int = 256,
        min_db: float = -100.0,
        max_db: float = -30.0,
    ) -> None:
        self.capture = capture
        self.scheduler = scheduler
        self.interval = interval
        self.fft_size = fft_size
        self.min_db = min_db
        self.max_db = max_db

        self._level = 0.0
        self._job: ScheduledJob | None = None
        self._on_level: Callable[[float], None] | None = None

    @property
    def level(self) -> float:
        return self._level

    @property
    def is_running(self) -> bool:
        return self._job is not None

    def start(self, on_level: Callable[[float], None]) -> None:
        self.stop()
        self._on_level = on_level
        self._job = self.scheduler.every(self.interval, self.sample, name="level")

    def stop(self) -> None:
        if self._job is not None:
            self._job.cancel()
            self._job = None

    def sample(self) -> float:
        window = self.capture.latest_window(self.fft_size)
        self._level = spectrum_level(window, self.fft_size, self.min_db, self.max_db)
        if self._on_level is not None:
            self._on_level(self._level)
        return self._level
