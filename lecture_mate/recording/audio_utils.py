import numpy as np
import soundfile as sf


def samples_to_wav(samples: np.ndarray, sample_rate: int, path: str) -> None:
    """Write float32 samples to a 16-bit PCM WAV file."""
    sf.write(path, samples, sample_rate, subtype="PCM_16")


def block_rms(samples: np.ndarray) -> float:
    """Root-mean-square amplitude of a block; 0.0 for an empty block."""
    if samples.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(samples, dtype=np.float64))))


def spectrum_level(
    samples: np.ndarray,
    fft_size: int = 256,
    min_db: float = -100.0,
    max_db: float = -30.0,
) -> float:
    """Reduce the most recent ``fft_size`` samples to a 0-100 loudness value.

    Pure function. The window is Blackman-weighted, each of the
    ``fft_size // 2`` magnitude bins is converted to decibels and scaled
    linearly between *min_db* and *max_db*, and the result is the arithmetic
    mean of the scaled bins.
    """
    window = np.zeros(fft_size, dtype=np.float64)
    tail = np.asarray(samples, dtype=np.float64).flatten()[-fft_size:]
    if tail.size:
        window[-tail.size:] = tail

    spectrum = np.abs(np.fft.rfft(window * np.blackman(fft_size)))[: fft_size // 2]
    magnitude_db = 20 * np.log10(np.maximum(spectrum / fft_size, 1e-12))
    scaled = np.clip((magnitude_db - min_db) / (max_db - min_db), 0.0, 1.0)
    return float(scaled.mean() * 100)
