import logging
import threading

import numpy as np
from faster_whisper import WhisperModel

from lecture_mate.config import settings

logger = logging.getLogger(__name__)


class WhisperService:
    """Lazy singleton around a faster-whisper model.

    The model is downloaded and loaded on the first call to ``get()``,
    not at import time or server startup.
    """

    _instance: "WhisperService | None" = None
    _lock = threading.Lock()

    def __init__(self) -> None:
        logger.info("Loading Whisper model %s on %s", settings.whisper_model, settings.whisper_device)
        self.model = WhisperModel(
            settings.whisper_model,
            device=settings.whisper_device,
            compute_type=settings.whisper_compute_type,
        )

    @classmethod
    def get(cls) -> "WhisperService":
        """Return the singleton, creating it (and downloading the model) if needed."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    def transcribe(self, samples: np.ndarray) -> str:
        """Transcribe mono float32 samples at ``settings.sample_rate``.

        Blocking; always call from a worker thread. Returns the stripped,
        space-joined segment texts ("" when nothing was recognised).
        """
        segments, _info = self.model.transcribe(
            samples.astype(np.float32),
            language=settings.language,
            beam_size=settings.beam_size,
        )
        # segments is a lazy generator; the join forces evaluation
        return " ".join(seg.text.strip() for seg in segments if seg.text.strip())
