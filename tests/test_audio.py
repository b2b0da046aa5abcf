"""Tests for audio helpers, level monitor, scheduler and microphone capture."""

import threading
from unittest.mock import MagicMock, patch

import numpy as np
import pytest
import soundfile as sf

from lecture_mate.recording.audio_utils import block_rms, samples_to_wav, spectrum_level
from lecture_mate.recording.capture import MicrophoneCapture
from lecture_mate.recording.errors import DeviceUnavailable, PermissionDenied
from lecture_mate.recording.level_monitor import AudioLevelMonitor
from lecture_mate.recording.scheduler import ThreadScheduler

from conftest import FakeCapture, ManualScheduler, sine_block, silent_block


class TestSpectrumLevel:
    def test_silence_is_zero(self):
        assert spectrum_level(silent_block(256)) == 0.0

    def test_empty_is_zero(self):
        assert spectrum_level(np.zeros(0, dtype=np.float32)) == 0.0

    def test_louder_is_higher(self):
        quiet = spectrum_level(sine_block(0.001, 256))
        loud = spectrum_level(sine_block(0.9, 256))
        assert 0.0 <= quiet < loud <= 100.0

    def test_noise_is_loud(self):
        rng = np.random.default_rng(0)
        noise = rng.uniform(-1, 1, 256).astype(np.float32)
        assert spectrum_level(noise) > 50

    def test_uses_latest_samples_only(self):
        samples = np.concatenate([sine_block(0.9, 1024), silent_block(256)])
        assert spectrum_level(samples, fft_size=256) == 0.0


class TestBlockRms:
    def test_constant(self):
        assert block_rms(np.full(100, 0.5, dtype=np.float32)) == pytest.approx(0.5)

    def test_empty(self):
        assert block_rms(np.zeros(0)) == 0.0


class TestSamplesToWav:
    def test_writes_pcm16(self, tmp_path):
        path = str(tmp_path / "out.wav")
        samples_to_wav(sine_block(0.5, 16000), 16000, path)
        info = sf.info(path)
        assert info.samplerate == 16000
        assert info.subtype == "PCM_16"
        assert info.frames == 16000


class TestAudioLevelMonitor:
    def test_samples_on_schedule(self):
        capture = FakeCapture()
        capture.window = sine_block(0.9, 256)
        scheduler = ManualScheduler()
        monitor = AudioLevelMonitor(capture, scheduler, interval=0.1)
        levels = []
        monitor.start(levels.append)
        scheduler.advance(0.3)
        assert len(levels) == 3
        assert monitor.level == levels[-1] > 0

    def test_stop_cancels_sampling(self):
        scheduler = ManualScheduler()
        monitor = AudioLevelMonitor(FakeCapture(), scheduler, interval=0.1)
        levels = []
        monitor.start(levels.append)
        monitor.stop()
        scheduler.advance(1)
        assert levels == []
        assert monitor.is_running is False

    def test_restart_replaces_job(self):
        scheduler = ManualScheduler()
        monitor = AudioLevelMonitor(FakeCapture(), scheduler, interval=0.1)
        monitor.start(lambda level: None)
        monitor.start(lambda level: None)
        assert len(scheduler.active("level")) == 1


class TestThreadScheduler:
    def test_runs_until_cancelled(self):
        calls = []
        fired = threading.Event()

        def job():
            calls.append(1)
            if len(calls) >= 3:
                fired.set()

        handle = ThreadScheduler().every(0.01, job, name="test")
        assert fired.wait(timeout=5)
        handle.cancel()
        assert handle.cancelled

    def test_failing_job_keeps_running(self):
        calls = []
        fired = threading.Event()

        def job():
            calls.append(1)
            if len(calls) >= 2:
                fired.set()
            raise RuntimeError("boom")

        handle = ThreadScheduler().every(0.01, job, name="failing")
        assert fired.wait(timeout=5)
        handle.cancel()


def _fake_sounddevice():
    sd = MagicMock()
    sd.PortAudioError = type("PortAudioError", (Exception,), {})
    return sd


class TestMicrophoneCapture:
    def test_open_and_close(self):
        sd = _fake_sounddevice()
        with patch.dict("sys.modules", {"sounddevice": sd}):
            capture = MicrophoneCapture(sample_rate=16000, block_size=512)
            capture.open()
            stream = sd.InputStream.return_value
            stream.start.assert_called_once()
            capture.close()
            capture.close()
        stream.close.assert_called_once()

    def test_no_device(self):
        sd = _fake_sounddevice()
        sd.query_devices.side_effect = sd.PortAudioError("Error querying device -1")
        with patch.dict("sys.modules", {"sounddevice": sd}):
            with pytest.raises(DeviceUnavailable):
                MicrophoneCapture().open()

    def test_permission_denied(self):
        sd = _fake_sounddevice()
        sd.InputStream.return_value.start.side_effect = sd.PortAudioError(
            "Error opening InputStream: Permission denied"
        )
        with patch.dict("sys.modules", {"sounddevice": sd}):
            with pytest.raises(PermissionDenied):
                MicrophoneCapture().open()

    def test_other_stream_error_is_device_unavailable(self):
        sd = _fake_sounddevice()
        sd.InputStream.side_effect = sd.PortAudioError("Invalid sample rate")
        with patch.dict("sys.modules", {"sounddevice": sd}):
            with pytest.raises(DeviceUnavailable):
                MicrophoneCapture().open()

    def test_callback_feeds_consumers(self):
        capture = MicrophoneCapture()
        block = sine_block(0.5, 1024).reshape(-1, 1)
        capture._audio_callback(block, 1024, None, None)
        assert capture.latest_window(256).shape == (256,)
        read = capture.read_block(timeout=0.1)
        assert np.array_equal(read, block[:, 0])
        assert capture.read_block(timeout=0.01) is None

    def test_drain(self):
        capture = MicrophoneCapture()
        capture._audio_callback(silent_block().reshape(-1, 1), 1024, None, None)
        capture.drain()
        assert capture.read_block(timeout=0.01) is None

    def test_archive_written_on_close(self, tmp_path):
        path = str(tmp_path / "audio" / "lec.wav")
        capture = MicrophoneCapture(sample_rate=16000, archive_path=path)
        for _ in range(4):
            capture._audio_callback(sine_block(0.5, 1024).reshape(-1, 1), 1024, None, None)
        capture.close()
        assert sf.info(path).frames == 4096
