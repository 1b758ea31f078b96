"""
Synthetic 4-channel recordings with known inter-microphone delays.

Used to exercise the estimator without hardware: each channel is the same
source signal circularly shifted by a whole number of samples, then
interleaved and quantised to int16 like the capture device delivers it.
"""

from typing import Optional, Sequence, Tuple

import numpy as np
from scipy.signal import butter, sosfiltfilt

from .config import SAMPLE_RATE, NUM_CHANNELS


def band_limited_noise(n: int, fs: int = SAMPLE_RATE,
                       band: Tuple[float, float] = (300.0, 3400.0),
                       seed: Optional[int] = None) -> np.ndarray:
    """
    White noise band-passed to the speech band, peak normalised to 1.

    Args:
        n: Number of samples
        fs: Sample rate in Hz
        band: Pass band (low, high) in Hz
        seed: Seed for the random generator
    """
    rng = np.random.default_rng(seed)
    noise = rng.standard_normal(n)

    sos = butter(4, band, btype='bandpass', fs=fs, output='sos')
    filtered = sosfiltfilt(sos, noise)
    return filtered / np.max(np.abs(filtered))


def sine_wave(freq: float, n: int, fs: int = SAMPLE_RATE) -> np.ndarray:
    """Unit amplitude sine of the given frequency."""
    t = np.arange(n) / fs
    return np.sin(2 * np.pi * freq * t)


def delayed_recording(source: np.ndarray, delays: Sequence[int],
                      amplitude: float = 8000.0,
                      silent: Sequence[int] = ()) -> np.ndarray:
    """
    Build an interleaved int16 buffer from one source signal.

    Args:
        source: Source signal, roughly in [-1, 1]
        delays: Delay in samples for each of the 4 channels (circular shift)
        amplitude: Scale applied before quantisation
        silent: Channels to leave at zero

    Returns:
        Flat int16 array [m0_0, m1_0, m2_0, m3_0, m0_1, ...]
    """
    if len(delays) != NUM_CHANNELS:
        raise ValueError(f"Expected {NUM_CHANNELS} delays, got {len(delays)}")

    source = np.asarray(source, dtype=np.float64)
    audio = np.zeros((len(source), NUM_CHANNELS))

    for ch, delay in enumerate(delays):
        if ch in silent:
            continue
        audio[:, ch] = np.roll(source, int(delay)) * amplitude

    audio = np.clip(np.round(audio), -32768, 32767).astype(np.int16)
    return audio.reshape(-1)


def noise_recording(delays: Sequence[int], n: int = 4096, fs: int = SAMPLE_RATE,
                    seed: Optional[int] = 0, amplitude: float = 8000.0) -> np.ndarray:
    """Interleaved recording of speech-band noise with per-channel delays."""
    return delayed_recording(band_limited_noise(n, fs, seed=seed), delays, amplitude)


def sine_recording(freq: float, delays: Sequence[int], n: int = 4096,
                   fs: int = SAMPLE_RATE, amplitude: float = 8000.0,
                   silent: Sequence[int] = ()) -> np.ndarray:
    """Interleaved recording of a pure tone with per-channel delays."""
    return delayed_recording(sine_wave(freq, n, fs), delays, amplitude, silent)
