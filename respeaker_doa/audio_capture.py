"""
Audio capture sources for the 4-mic array.

Every source hands out blocks of interleaved int16 samples, frame_length
frames (x 4 channels) at a time, which is exactly what the DOA processor
consumes.
"""

import wave
from typing import Optional, List, Dict, Any, Iterator, Union

import numpy as np

from .config import ArrayConfig

try:
    import sounddevice as sd
    _HAS_SOUNDDEVICE = True
except (ImportError, OSError):
    _HAS_SOUNDDEVICE = False
    import warnings
    warnings.warn("sounddevice not available, live audio capture disabled")


def list_input_devices() -> List[Dict[str, Any]]:
    """
    List all available audio input devices

    Returns:
        List of device info dictionaries with keys:
        - index: Device index
        - name: Device name
        - channels: Max input channels
        - sample_rate: Default sample rate
    """
    if not _HAS_SOUNDDEVICE:
        print("sounddevice not available. Install with: pip install sounddevice")
        return []

    devices = []
    for i, device in enumerate(sd.query_devices()):
        if device['max_input_channels'] > 0:
            devices.append({
                'index': i,
                'name': device['name'],
                'channels': device['max_input_channels'],
                'sample_rate': int(device['default_samplerate'])
            })
    return devices


def find_device(name_hint: str, min_channels: int = 4) -> Optional[int]:
    """Find an input device by case-insensitive name substring."""
    name_lower = name_hint.lower()
    for device in list_input_devices():
        if name_lower in device['name'].lower() and device['channels'] >= min_channels:
            print(f"Found capture device: {device['name']} (ID: {device['index']})")
            return device['index']
    return None


class AudioSource:
    """Base class for audio sources"""

    def __init__(self, config: ArrayConfig):
        self.config = config
        self.channels = config.num_channels
        self.sample_rate = config.sample_rate
        self.frame_length = config.frame_length

    def read_block(self) -> Optional[np.ndarray]:
        """Read one block of interleaved int16 samples, None at end of stream."""
        raise NotImplementedError()

    def close(self):
        """Close audio source"""
        pass

    def __iter__(self) -> Iterator[np.ndarray]:
        while True:
            block = self.read_block()
            if block is None:
                return
            yield block

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class WavFileSource(AudioSource):
    """Read 4-channel 16-bit audio from a WAV file"""

    def __init__(self, config: ArrayConfig, filename: str):
        super().__init__(config)
        self.filename = filename
        self.wav = wave.open(str(filename), 'rb')

        try:
            if self.wav.getnchannels() != self.channels:
                raise ValueError(f"Expected {self.channels} channels, got {self.wav.getnchannels()}")
            if self.wav.getsampwidth() != 2:
                raise ValueError(f"Expected 16-bit samples, got {8 * self.wav.getsampwidth()}-bit")
            if self.wav.getframerate() != self.sample_rate:
                raise ValueError(f"Expected {self.sample_rate} Hz, got {self.wav.getframerate()}")
        except ValueError:
            self.wav.close()
            raise

    def read_block(self) -> Optional[np.ndarray]:
        """Read one block from the WAV file, zero padding the last one"""
        if self.wav is None:
            return None

        frames = self.wav.readframes(self.frame_length)
        if len(frames) == 0:
            return None

        audio = np.frombuffer(frames, dtype='<i2').astype(np.int16)

        block_size = self.frame_length * self.channels
        if len(audio) < block_size:
            audio = np.concatenate([audio, np.zeros(block_size - len(audio), dtype=np.int16)])

        return audio

    def close(self):
        if self.wav:
            self.wav.close()
            self.wav = None


class DeviceSource(AudioSource):
    """Read audio from a live capture device (e.g. the seeed-4mic-voicecard)"""

    def __init__(self, config: ArrayConfig, device: Optional[Union[int, str]] = None):
        super().__init__(config)

        if not _HAS_SOUNDDEVICE:
            raise RuntimeError("sounddevice not available. Install with: pip install sounddevice")

        self.stream = None
        self.device = device
        if isinstance(device, str):
            self.device = find_device(device, self.channels)
            if self.device is None:
                raise ValueError(f"Audio device '{device}' not found")

        try:
            self.stream = sd.InputStream(
                device=self.device,
                channels=self.channels,
                samplerate=self.sample_rate,
                blocksize=self.frame_length,
                dtype='int16'
            )
            self.stream.start()
        except Exception as e:
            raise RuntimeError(f"Failed to open audio device: {e}") from e

        print(f"Started audio capture: {self.frame_length} frames @ {self.sample_rate}Hz")

    def read_block(self) -> Optional[np.ndarray]:
        """Read one block from the device (blocking)"""
        if self.stream is None:
            return None

        data, overflowed = self.stream.read(self.frame_length)
        if overflowed:
            print("Audio status: input overflow")

        return np.ascontiguousarray(data, dtype=np.int16).reshape(-1)

    def close(self):
        """Stop and close the input stream"""
        if self.stream is not None:
            self.stream.stop()
            self.stream.close()
            self.stream = None
            print("Stopped audio capture")


def write_wav(filename: str, buffer: np.ndarray, config: ArrayConfig):
    """Write an interleaved int16 buffer as a 4-channel WAV file"""
    with wave.open(str(filename), 'wb') as wav:
        wav.setnchannels(config.num_channels)
        wav.setsampwidth(2)
        wav.setframerate(config.sample_rate)
        wav.writeframes(np.asarray(buffer, dtype='<i2').tobytes())
