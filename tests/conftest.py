"""Shared test fixtures: fake microphone, transcription engine and clock."""

import time
from collections import deque

import numpy as np
import pytest

from lecture_mate.config import settings
from lecture_mate.recording.events import FinalText, InterimText, SourceEnded, TranscriptionError
from lecture_mate.recording.session import RecordingSession
from lecture_mate.recording.transcription import TranscriptionSource


def sine_block(amplitude: float = 0.5, size: int = 1024, freq: float = 440.0) -> np.ndarray:
    t = np.arange(size) / 16000
    return (amplitude * np.sin(2 * np.pi * freq * t)).astype(np.float32)


def silent_block(size: int = 1024) -> np.ndarray:
    return np.zeros(size, dtype=np.float32)


class FakeCapture:
    sample_rate = 16000

    def __init__(self, open_error: Exception | None = None) -> None:
        self.open_error = open_error
        self.opened = 0
        self.closed = 0
        self.paused = 0
        self.resumed = 0
        self.window = np.zeros(256, dtype=np.float32)
        self.blocks: deque = deque()
        self.read_error: Exception | None = None

    def open(self) -> None:
        if self.open_error is not None:
            raise self.open_error
        self.opened += 1

    def close(self) -> None:
        self.closed += 1

    def pause(self) -> None:
        self.paused += 1

    def resume(self) -> None:
        self.resumed += 1

    def latest_window(self, size: int) -> np.ndarray:
        return self.window[-size:]

    def read_block(self, timeout: float = 0.25):
        if self.read_error is not None:
            raise self.read_error
        if self.blocks:
            return self.blocks.popleft()
        time.sleep(0.01)
        return None

    def drain(self) -> None:
        self.blocks.clear()


class FakeTranscriptionSource(TranscriptionSource):
    def __init__(self, probe_error: Exception | None = None) -> None:
        self.probe_error = probe_error
        self.start_error: Exception | None = None
        self.starts = 0
        self.stops = 0
        self.closed = 0
        self.running = False
        self.emit = None

    def probe(self) -> None:
        if self.probe_error is not None:
            raise self.probe_error

    def start(self, emit) -> None:
        if self.start_error is not None:
            raise self.start_error
        self.emit = emit
        self.starts += 1
        self.running = True

    def stop(self) -> None:
        self.stops += 1
        self.running = False

    def close(self) -> None:
        self.closed += 1
        self.stop()

    # helpers that play the engine's part
    def interim(self, text: str) -> None:
        self.emit(InterimText(text))

    def final(self, text: str) -> None:
        self.emit(FinalText(text))

    def error(self, message: str, fatal: bool = False) -> None:
        self.emit(TranscriptionError(message, fatal=fatal))

    def end(self) -> None:
        self.emit(SourceEnded())


class ManualJob:
    def __init__(self, interval: float, fn, name: str) -> None:
        self.interval = interval
        self.fn = fn
        self.name = name
        self.elapsed = 0.0
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Clock driven by the test through ``advance()``."""

    def __init__(self) -> None:
        self.jobs: list[ManualJob] = []

    def every(self, interval: float, fn, name: str = "job") -> ManualJob:
        job = ManualJob(interval, fn, name)
        self.jobs.append(job)
        return job

    def active(self, name: str) -> list[ManualJob]:
        return [j for j in self.jobs if j.name == name and not j.cancelled]

    def advance(self, seconds: float) -> None:
        for job in list(self.jobs):
            if job.cancelled:
                continue
            job.elapsed += seconds
            while job.elapsed >= job.interval - 1e-9 and not job.cancelled:
                job.elapsed -= job.interval
                job.fn()


@pytest.fixture
def capture():
    return FakeCapture()


@pytest.fixture
def source():
    return FakeTranscriptionSource()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def session(capture, source, scheduler):
    return RecordingSession(capture=capture, source=source, scheduler=scheduler)


@pytest.fixture
def temp_db(tmp_path, monkeypatch):
    path = str(tmp_path / "lectures.db")
    monkeypatch.setattr(settings, "database_path", path)
    return path
