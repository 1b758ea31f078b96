"""
respeaker-doa: direction of arrival for 4-mic circular arrays

Provides:
- GCC-PHAT time delay estimation between microphone pairs
- Azimuth estimation from one interleaved 4-channel capture block
- Capture sources, triggers and an LED ring for live use
"""

from .config import ArrayConfig, load_config
from .gcc_phat import gcc_phat, estimate_lag, LagPeak
from .doa_processor import (DOAProcessor, DirectionEstimate, get_direction,
                            deinterleave, fmod_wrap, tau_to_angle, combine_angles)
from .doalive import DoaLive
from .led_ring import LedRing
from .trigger import EnergyTrigger, AlwaysTrigger
from .version import __version__

__all__ = ['ArrayConfig', 'load_config', 'gcc_phat', 'estimate_lag', 'LagPeak',
           'DOAProcessor', 'DirectionEstimate', 'get_direction', 'deinterleave',
           'fmod_wrap', 'tau_to_angle', 'combine_angles', 'DoaLive', 'LedRing',
           'EnergyTrigger', 'AlwaysTrigger', '__version__']
