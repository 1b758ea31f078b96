"""
Direction of Arrival (DOA) processing for a circular 4-microphone array.

The interleaved capture buffer is split into channels, GCC-PHAT is run on the
two pairs of opposite microphones (0 & 2, 1 & 3), each delay is turned into an
angle and the two angles are merged into one azimuth in [0, 360).
"""

import math
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np

from .config import ArrayConfig, NUM_CHANNELS, load_config
from .gcc_phat import gcc_phat

# Opposite microphones across the circle
MIC_PAIRS: Tuple[Tuple[int, int], Tuple[int, int]] = ((0, 2), (1, 3))


@dataclass(frozen=True)
class DirectionEstimate:
    """Intermediate and final results of one direction estimate."""
    tau1: float
    tau2: float
    theta1: float
    theta2: float
    azimuth: float


def fmod_wrap(x: float, y: float = 360.0) -> float:
    """
    Modulo that always lands in [0, y).

    Unlike a single +360 correction followed by fmod, this holds for any
    finite x, e.g. fmod_wrap(-725, 360) == 355.
    """
    result = math.fmod(x, y)
    if result < 0:
        result += y
    # -1e-15 + 360 rounds to 360
    if result >= y:
        result = 0.0
    return result + 0.0  # no -0.0


def tau_to_angle(tau: float, max_tdoa: float) -> float:
    """
    Convert a pair delay to an angle in degrees.

    The normalised delay is clamped to [-1, 1] before the arcsine, so delays
    longer than the pair can physically produce map to +/-90 degrees.
    """
    ratio = float(np.clip(tau / max_tdoa, -1.0, 1.0))
    return math.degrees(math.asin(ratio))


def combine_angles(theta1: float, theta2: float) -> float:
    """
    Merge the angles of the two microphone pairs into one azimuth.

    GCC-PHAT resolves poorly near +/-90 degrees, so the pair with the smaller
    angle is trusted and the other one only picks the half plane.
    """
    if abs(theta1) < abs(theta2):
        if theta2 > 0:
            best_guess = fmod_wrap(theta1 + 360.0, 360.0)
        else:
            best_guess = 180.0 - theta1
    else:
        if theta1 < 0:
            best_guess = fmod_wrap(theta2 + 360.0, 360.0)
        else:
            best_guess = 180.0 - theta2
        best_guess = fmod_wrap(best_guess + 270.0, 360.0)

    return fmod_wrap(-best_guess + 120.0, 360.0)


def deinterleave(buffer, num_channels: int = NUM_CHANNELS) -> np.ndarray:
    """
    Split an interleaved sample buffer into channels.

    Trailing samples that do not fill a whole frame are dropped. Samples are
    converted to float64 without rescaling and copied, the caller's buffer is
    never referenced by the result.

    Args:
        buffer: Interleaved samples [m0_0, m1_0, m2_0, m3_0, m0_1, ...]
        num_channels: Number of interleaved channels

    Returns:
        Array of shape [frames, channels]
    """
    samples = np.asarray(buffer)
    if samples.ndim != 1:
        raise ValueError(f"Expected a flat sample buffer, got shape {samples.shape}")

    frame_count = len(samples) // num_channels
    usable = samples[:frame_count * num_channels]
    return usable.astype(np.float64).reshape(frame_count, num_channels)


class DOAProcessor:
    """Direction of Arrival processor for the ReSpeaker-style 4-mic array."""

    def __init__(self, config: Optional[Union[ArrayConfig, str, Path]] = None):
        """
        Initialize DOA processor with array geometry.

        Args:
            config: ArrayConfig, path to a JSON config, or None for the
                packaged ReSpeaker 4-mic defaults
        """
        if config is None:
            config = load_config()
        elif not isinstance(config, ArrayConfig):
            config = ArrayConfig.from_json(config)

        self.config = config
        self.sample_rate = config.sample_rate
        self.max_tdoa = config.max_tdoa

        print(f"DOA Processor initialized: {config.name}, "
              f"{config.mic_distance * 1000:.1f}mm pairs @ {config.sample_rate}Hz "
              f"(max TDOA {self.max_tdoa * 1000:.3f}ms)")

    def _pair_delay(self, channels: np.ndarray, pair: Tuple[int, int]) -> float:
        i, j = pair
        return gcc_phat(
            channels[:, i], channels[:, j],
            fs=self.sample_rate,
            max_shift=self.config.max_shift,
            n=len(channels),
            floor=self.config.phat_floor,
            legacy=self.config.legacy_lag_search,
        )

    def analyze(self, buffer) -> DirectionEstimate:
        """
        Estimate the direction of one interleaved 4-channel buffer.

        Args:
            buffer: Interleaved int16 samples, 4 channels

        Returns:
            DirectionEstimate with both pair delays and angles

        Raises:
            ValueError: If the buffer is not flat or holds too few frames
        """
        channels = deinterleave(buffer, NUM_CHANNELS)
        if len(channels) < self.config.min_frames:
            raise ValueError(
                f"Buffer too short: {len(channels)} frames, "
                f"need at least {self.config.min_frames}")

        tau1 = self._pair_delay(channels, MIC_PAIRS[0])
        theta1 = tau_to_angle(tau1, self.max_tdoa)

        tau2 = self._pair_delay(channels, MIC_PAIRS[1])
        theta2 = tau_to_angle(tau2, self.max_tdoa)

        azimuth = combine_angles(theta1, theta2)
        return DirectionEstimate(tau1, tau2, theta1, theta2, azimuth)

    def estimate_direction(self, buffer) -> float:
        """Get the direction as a value in [0, 360) degrees."""
        return self.analyze(buffer).azimuth

    def __repr__(self):
        return f"DOAProcessor(config='{self.config.name}')"


def get_direction(buffer, config: Optional[Union[ArrayConfig, str, Path]] = None) -> float:
    """One-shot helper: build a processor and estimate one buffer."""
    return DOAProcessor(config).estimate_direction(buffer)
