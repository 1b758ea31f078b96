"""
Array geometry and processing parameters.

The defaults describe the ReSpeaker 4-mic HAT: opposite microphones 81 mm
apart, 16 kHz capture, 4096-frame blocks.
"""

import json
import math
from dataclasses import dataclass, fields, asdict
from pathlib import Path
from typing import Optional, Union, Dict, Any

DEFAULT_CONFIG_FILE = Path(__file__).parent / "data" / "respeaker_4mic.json"

SOUND_SPEED = 340.0
MIC_DISTANCE_4 = 0.081
SAMPLE_RATE = 16000
MAX_SHIFT = 3
FRAME_LENGTH = 4096
NUM_CHANNELS = 4


@dataclass(frozen=True)
class ArrayConfig:
    """Geometry of the microphone array and estimator parameters."""

    name: str = "respeaker_4mic"
    sample_rate: int = SAMPLE_RATE
    speed_of_sound: float = SOUND_SPEED
    mic_distance: float = MIC_DISTANCE_4
    max_shift: int = MAX_SHIFT
    frame_length: int = FRAME_LENGTH
    num_channels: int = NUM_CHANNELS
    legacy_lag_search: bool = False
    phat_floor: float = 1e-12
    num_leds: int = 12

    def __post_init__(self):
        if self.num_channels != NUM_CHANNELS:
            raise ValueError(f"Expected {NUM_CHANNELS} channels, got {self.num_channels}")
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        if not self.speed_of_sound > 0:
            raise ValueError(f"speed_of_sound must be positive, got {self.speed_of_sound}")
        if not self.mic_distance > 0:
            raise ValueError(f"mic_distance must be positive, got {self.mic_distance}")
        if self.max_shift < 1:
            raise ValueError(f"max_shift must be at least 1, got {self.max_shift}")
        if self.frame_length < self.min_frames:
            raise ValueError(
                f"frame_length must be at least {self.min_frames}, got {self.frame_length}")
        if not (math.isfinite(self.phat_floor) and self.phat_floor >= 0):
            raise ValueError(f"phat_floor must be finite and >= 0, got {self.phat_floor}")
        if self.num_leds < 1:
            raise ValueError(f"num_leds must be at least 1, got {self.num_leds}")

    @property
    def max_tdoa(self) -> float:
        """Largest physically possible delay between two opposite mics (seconds)."""
        return self.mic_distance / self.speed_of_sound

    @property
    def min_frames(self) -> int:
        """Shortest channel length the lag search can work on."""
        return 2 * self.max_shift + 2

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ArrayConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(unknown)}")
        return cls(**data)

    @classmethod
    def from_json(cls, config_file: Union[str, Path]) -> "ArrayConfig":
        """Load a configuration from a JSON file.

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: On unknown keys or invalid values
        """
        with open(config_file, 'r') as f:
            data = json.load(f)
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_config(config_file: Optional[Union[str, Path]] = None) -> ArrayConfig:
    """Load the given JSON config, or the packaged ReSpeaker 4-mic one."""
    if config_file is None:
        config_file = DEFAULT_CONFIG_FILE
    return ArrayConfig.from_json(config_file)
