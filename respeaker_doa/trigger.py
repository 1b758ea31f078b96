"""
Triggers deciding which captured blocks get a direction estimate.

A trigger looks at channel 0 of a block and answers yes or no, the same role
a hotword detector plays in front of the estimator.
"""

import numpy as np

# 0 dBFS for int16 samples
FULL_SCALE = 32768.0
SILENCE_DBFS = -120.0


def rms_dbfs(samples) -> float:
    """RMS level of int16-scaled samples in dBFS, silence floored at -120."""
    samples = np.asarray(samples, dtype=np.float64)
    if samples.size == 0:
        return SILENCE_DBFS

    rms = np.sqrt(np.mean(samples ** 2)) / FULL_SCALE
    if rms <= 0:
        return SILENCE_DBFS
    return max(20.0 * np.log10(rms), SILENCE_DBFS)


class AlwaysTrigger:
    """Fire on every block."""

    def __call__(self, channel: np.ndarray) -> bool:
        return True

    def reset(self):
        pass


class EnergyTrigger:
    """
    Fire when the channel level reaches a threshold.

    After firing, the next ``holdoff_blocks`` blocks are ignored so one loud
    event yields one estimate.

    Args:
        threshold_dbfs: Level in dBFS at or above which the trigger fires
        holdoff_blocks: Blocks to skip after a detection
    """

    def __init__(self, threshold_dbfs: float = -40.0, holdoff_blocks: int = 0):
        if holdoff_blocks < 0:
            raise ValueError(f"holdoff_blocks must be >= 0, got {holdoff_blocks}")
        self.threshold_dbfs = threshold_dbfs
        self.holdoff_blocks = holdoff_blocks
        self._holdoff = 0
        self.last_level = SILENCE_DBFS

    def __call__(self, channel: np.ndarray) -> bool:
        self.last_level = rms_dbfs(channel)

        if self._holdoff > 0:
            self._holdoff -= 1
            return False

        if self.last_level >= self.threshold_dbfs:
            self._holdoff = self.holdoff_blocks
            return True
        return False

    def reset(self):
        self._holdoff = 0
        self.last_level = SILENCE_DBFS

    def __repr__(self):
        return (f"EnergyTrigger(threshold_dbfs={self.threshold_dbfs}, "
                f"holdoff_blocks={self.holdoff_blocks})")
