import logging
import os
import queue
import threading

import numpy as np

from lecture_mate.recording.audio_utils import samples_to_wav
from lecture_mate.recording.errors import DeviceUnavailable, PermissionDenied

logger = logging.getLogger(__name__)

_PERMISSION_MARKERS = ("permission", "not permitted", "access denied")


def _is_permission_error(err: Exception) -> bool:
    message = str(err).lower()
    return any(marker in message for marker in _PERMISSION_MARKERS)


class MicrophoneCapture:
    """Owns the live microphone stream.

    Threading model:

    1. **Audio callback**: sounddevice's C audio thread. Only copies the
       block into the transcription queue and the latest-window slot.
    2. **Consumers**: the level monitor reads ``latest_window`` and the
       transcription worker pulls ``read_block``; both on their own threads.

    ``close()`` releases the device exactly once, however many times it is
    called, and writes the archived audio when ``archive_path`` is set.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        block_size: int = 1024,
        device: int | None = None,
        archive_path: str | None = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.block_size = block_size
        self.device = device
        self.archive_path = archive_path

        self._blocks: queue.Queue[np.ndarray] = queue.Queue()
        self._latest = np.zeros(0, dtype=np.float32)
        self._archive: list[np.ndarray] = []
        self._lock = threading.Lock()

        self._stream = None
        self._closed = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> None:
        """Acquire the input device and start streaming.

        Raises ``DeviceUnavailable`` when there is no input device (or no
        PortAudio at all) and ``PermissionDenied`` when the OS refuses access.
        """
        try:
            import sounddevice as sd
        except OSError as e:
            raise DeviceUnavailable(f"Audio backend unavailable: {e}") from e

        try:
            sd.query_devices(self.device, kind="input")
        except (ValueError, sd.PortAudioError) as e:
            raise DeviceUnavailable(f"No microphone found: {e}") from e

        try:
            stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=1,
                dtype="float32",
                blocksize=self.block_size,
                device=self.device,
                callback=self._audio_callback,
            )
            stream.start()
        except sd.PortAudioError as e:
            if _is_permission_error(e):
                raise PermissionDenied(f"Microphone access denied: {e}") from e
            raise DeviceUnavailable(f"Could not open microphone: {e}") from e

        self._stream = stream
        self._closed = False
        logger.info("Microphone opened (%d Hz, device=%s)", self.sample_rate, self.device)

    def pause(self) -> None:
        if self._stream is not None:
            self._stream.stop()
        self.drain()

    def resume(self) -> None:
        if self._stream is not None:
            self._stream.start()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._stream is not None:
            self._stream.stop()
            self._stream.close()
            self._stream = None
            logger.info("Microphone closed")
        self.drain()
        self._write_archive()

    def __enter__(self) -> "MicrophoneCapture":
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Consumers
    # ------------------------------------------------------------------

    def read_block(self, timeout: float = 0.25) -> np.ndarray | None:
        """Next captured block for transcription, or None after *timeout*."""
        try:
            return self._blocks.get(timeout=timeout)
        except queue.Empty:
            return None

    def latest_window(self, size: int) -> np.ndarray:
        """The most recent *size* samples (fewer right after opening)."""
        with self._lock:
            return self._latest[-size:].copy()

    def drain(self) -> None:
        """Discard blocks not yet consumed by the transcription worker."""
        while True:
            try:
                self._blocks.get_nowait()
            except queue.Empty:
                return

    # ------------------------------------------------------------------
    # Audio callback (C audio thread)
    # ------------------------------------------------------------------

    def _audio_callback(self, indata, frames, timeinfo, status) -> None:  # noqa: ANN001
        block = indata[:, 0].copy()
        with self._lock:
            self._latest = block
            if self.archive_path:
                self._archive.append(block)
        self._blocks.put(block)

    def _write_archive(self) -> None:
        with self._lock:
            if not self.archive_path or not self._archive:
                return
            samples = np.concatenate(self._archive)
            self._archive = []
        os.makedirs(os.path.dirname(self.archive_path) or ".", exist_ok=True)
        samples_to_wav(samples, self.sample_rate, self.archive_path)
        logger.info("Archived %.1f s of audio to %s", len(samples) / self.sample_rate, self.archive_path)
