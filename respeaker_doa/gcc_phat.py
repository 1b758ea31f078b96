"""
Time delay estimation between two microphones using GCC-PHAT.

The cross-power spectrum of the two signals is normalised to unit magnitude
(phase transform), transformed back, and the strongest peak is searched in a
small window of lags around zero. Only lags within +/- max_shift samples are
considered since the microphones are close together.

Sign convention: a positive lag means ``sig`` is a delayed copy of ``refsig``,
i.e. the sound reached the reference microphone first.
"""

from typing import NamedTuple, Optional

import numpy as np
from numpy.fft import rfft, irfft

from .config import SAMPLE_RATE, MAX_SHIFT


class LagPeak(NamedTuple):
    """Winner of the lag search.

    ``index`` is the position in the candidate window, or None when the legacy
    search never moved past its starting point.
    """
    index: Optional[int]
    lag: int
    value: float


def _validate_pair(sig, refsig, n: Optional[int], max_shift: int):
    sig = np.asarray(sig, dtype=np.float64)
    refsig = np.asarray(refsig, dtype=np.float64)

    if sig.ndim != 1 or refsig.ndim != 1:
        raise ValueError(f"Signals must be 1-D, got shapes {sig.shape} and {refsig.shape}")
    if len(sig) != len(refsig):
        raise ValueError(
            f"Signals must have same length. Got sig: {len(sig)}, refsig: {len(refsig)}")
    if n is None:
        n = len(sig)
    elif n != len(sig):
        raise ValueError(f"Length {n} does not match signal length {len(sig)}")
    if max_shift < 1:
        raise ValueError(f"max_shift must be at least 1, got {max_shift}")
    if n < 2 * max_shift + 2:
        raise ValueError(
            f"Signals too short for lag search. Got {n} samples, "
            f"need at least {2 * max_shift + 2}.")
    if not (np.all(np.isfinite(sig)) and np.all(np.isfinite(refsig))):
        raise ValueError("Signals contain NaN or Inf values")

    return sig, refsig, n


def phat_weighting(cross_spectrum: np.ndarray, floor: float = 1e-12) -> np.ndarray:
    """
    Normalise every bin of a cross-power spectrum to unit magnitude.

    Bins whose magnitude is at or below ``floor`` times the largest magnitude
    carry no usable phase (zero bins, numerical noise around a pure tone,
    silence) and are set to exactly zero instead of being divided.

    Args:
        cross_spectrum: Complex cross-power spectrum
        floor: Relative magnitude below which a bin is zeroed

    Returns:
        Phase-only spectrum, always finite
    """
    magnitude = np.abs(cross_spectrum)
    weighted = np.zeros_like(cross_spectrum, dtype=np.complex128)

    peak = magnitude.max() if magnitude.size else 0.0
    if peak == 0.0:
        return weighted

    usable = magnitude > floor * peak
    np.divide(cross_spectrum, magnitude, out=weighted, where=usable)
    return weighted


def gcc_phat_correlation(sig, refsig, n: Optional[int] = None,
                         floor: float = 1e-12) -> np.ndarray:
    """
    Compute the circular GCC-PHAT cross-correlation of two signals.

    Args:
        sig, refsig: Input signals (same length)
        n: Transform length, must equal the signal length when given
        floor: Relative PHAT floor, see phat_weighting()

    Returns:
        correlation: Circular cross-correlation of length n, lag 0 at index 0
    """
    sig, refsig, n = _validate_pair(sig, refsig, n, 1)

    SIG = rfft(sig, n=n)
    REFSIG = rfft(refsig, n=n)

    cross_spectrum = SIG * np.conj(REFSIG)
    return irfft(phat_weighting(cross_spectrum, floor), n=n)


def candidate_window(correlation: np.ndarray, max_shift: int = MAX_SHIFT) -> np.ndarray:
    """
    Pick |cc| at lags -max_shift..max_shift out of a circular correlation.

    Index ``max_shift`` of the result is lag 0.
    """
    n = len(correlation)
    indices = np.arange(-max_shift, max_shift + 1) % n
    return np.abs(correlation[indices])


def find_lag_peak(window: np.ndarray, legacy: bool = False) -> LagPeak:
    """
    Find the strongest lag in a candidate window.

    The first strict maximum wins, so ties resolve to the most negative lag.

    With ``legacy`` set the search starts from index 0 without recording it as
    a position: if nothing later is strictly larger the index is None and the
    lag ends up one past the most negative lag (-max_shift - 1). Only useful
    to reproduce headings recorded with the first 4-mic HAT firmware.
    """
    max_shift = (len(window) - 1) // 2

    if not legacy:
        index = int(np.argmax(window))
        return LagPeak(index, index - max_shift, float(window[index]))

    index = None
    current = window[0]
    for i in range(1, len(window)):
        if current < window[i]:
            current = window[i]
            index = i

    position = -1 if index is None else index
    return LagPeak(index, position - max_shift, float(current))


def estimate_lag(sig, refsig, max_shift: int = MAX_SHIFT, n: Optional[int] = None,
                 floor: float = 1e-12, legacy: bool = False) -> LagPeak:
    """Run GCC-PHAT and return the winning lag in samples."""
    sig, refsig, n = _validate_pair(sig, refsig, n, max_shift)
    correlation = gcc_phat_correlation(sig, refsig, n, floor)
    return find_lag_peak(candidate_window(correlation, max_shift), legacy)


def gcc_phat(sig, refsig, fs: int = SAMPLE_RATE, max_shift: int = MAX_SHIFT,
             n: Optional[int] = None, floor: float = 1e-12,
             legacy: bool = False) -> float:
    """
    Estimate the time delay of ``sig`` relative to ``refsig``.

    Args:
        sig: Signal from the first microphone
        refsig: Signal from the reference microphone
        fs: Sample rate in Hz, used to convert lags to seconds
        max_shift: Largest lag (in samples) searched in each direction
        n: Signal length, checked against the inputs
        floor: Relative PHAT floor, see phat_weighting()
        legacy: Use the sentinel-based peak search, see find_lag_peak()

    Returns:
        tau: Delay in seconds, a multiple of 1/fs

    Raises:
        ValueError: On mismatched, too short or non-finite inputs
    """
    peak = estimate_lag(sig, refsig, max_shift=max_shift, n=n, floor=floor, legacy=legacy)
    return peak.lag / float(fs)
