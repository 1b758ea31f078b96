#!/usr/bin/env python3
"""
Basic respeaker-doa usage example

Builds synthetic 4-channel captures with known inter-microphone delays and
prints the heading the estimator derives for each.
"""

import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from respeaker_doa import DOAProcessor
from respeaker_doa.simulate import noise_recording


def main():
    print("=" * 60)
    print("respeaker-doa Basic Usage Example")
    print("=" * 60)
    print()

    processor = DOAProcessor()
    config = processor.config
    print(f"  Sample rate: {config.sample_rate} Hz")
    print(f"  Block size: {config.frame_length} frames")
    print(f"  Lag window: +/-{config.max_shift} samples")
    print()

    # Per-channel delays in samples (mic 0, mic 1, mic 2, mic 3)
    scenarios = [
        (0, 0, 0, 0),
        (0, 1, 2, 0),
        (2, 0, 0, 1),
        (0, 3, 1, 0),
        (1, 0, 0, 2),
    ]

    print(f"{'Delays':<16} {'tau1 (us)':>10} {'tau2 (us)':>10} {'theta1':>8} {'theta2':>8} {'Azimuth':>8}")
    print("-" * 64)
    for delays in scenarios:
        buffer = noise_recording(delays, n=config.frame_length, fs=config.sample_rate)
        est = processor.analyze(buffer)
        print(f"{str(delays):<16} {est.tau1 * 1e6:>10.1f} {est.tau2 * 1e6:>10.1f} "
              f"{est.theta1:>8.1f} {est.theta2:>8.1f} {est.azimuth:>8.1f}")

    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
