"""
Tests for capture sources (WAV file source and a faked capture device)
"""

import types
import wave

import numpy as np
import pytest

from respeaker_doa import audio_capture
from respeaker_doa.audio_capture import WavFileSource, DeviceSource, write_wav
from respeaker_doa.config import ArrayConfig


@pytest.fixture
def config():
    return ArrayConfig(frame_length=64)


def test_wav_source_blocks(tmp_path, config):
    buffer = np.arange(4 * 150, dtype=np.int16)
    path = tmp_path / "capture.wav"
    write_wav(str(path), buffer, config)

    with WavFileSource(config, str(path)) as source:
        blocks = list(source)

    assert len(blocks) == 3
    assert all(block.dtype == np.int16 and len(block) == 4 * 64 for block in blocks)
    np.testing.assert_array_equal(np.concatenate(blocks)[:len(buffer)], buffer)
    # last block zero padded
    assert np.all(blocks[-1][4 * 22:] == 0)


def test_wav_source_end_of_stream(tmp_path, config):
    path = tmp_path / "short.wav"
    write_wav(str(path), np.ones(4 * 64, dtype=np.int16), config)

    source = WavFileSource(config, str(path))
    assert source.read_block() is not None
    assert source.read_block() is None
    source.close()
    assert source.read_block() is None


def test_wav_source_rejects_channel_count(tmp_path, config):
    path = tmp_path / "stereo.wav"
    with wave.open(str(path), 'wb') as wav:
        wav.setnchannels(2)
        wav.setsampwidth(2)
        wav.setframerate(16000)
        wav.writeframes(np.zeros(128, dtype=np.int16).tobytes())

    with pytest.raises(ValueError, match="channels"):
        WavFileSource(config, str(path))


def test_wav_source_rejects_sample_rate(tmp_path, config):
    path = tmp_path / "44k.wav"
    write_wav(str(path), np.zeros(4 * 64, dtype=np.int16), ArrayConfig(sample_rate=44100))

    with pytest.raises(ValueError, match="Hz"):
        WavFileSource(config, str(path))


def test_device_source_requires_sounddevice(monkeypatch, config):
    monkeypatch.setattr(audio_capture, "_HAS_SOUNDDEVICE", False)

    with pytest.raises(RuntimeError, match="sounddevice"):
        DeviceSource(config)
    assert audio_capture.list_input_devices() == []
    assert audio_capture.find_device("seeed") is None


class FakeInputStream:
    """Stands in for sounddevice.InputStream, returning (frames, channels) blocks."""

    def __init__(self, device=None, channels=None, samplerate=None, blocksize=None, dtype=None):
        self.kwargs = dict(device=device, channels=channels, samplerate=samplerate,
                           blocksize=blocksize, dtype=dtype)
        self.started = False
        self.stopped = False
        self.closed = False
        self.reads = 0
        FakeInputStream.last = self

    def start(self):
        self.started = True

    def read(self, frames):
        # sample value encodes (frame, channel)
        base = self.reads * frames
        self.reads += 1
        data = np.array([[(base + f) * 10 + ch for ch in range(self.kwargs['channels'])]
                         for f in range(frames)], dtype=np.int16)
        return data, self.reads == 2

    def stop(self):
        self.stopped = True

    def close(self):
        self.closed = True


@pytest.fixture
def fake_sounddevice(monkeypatch):
    fake = types.SimpleNamespace(InputStream=FakeInputStream)
    monkeypatch.setattr(audio_capture, "_HAS_SOUNDDEVICE", True)
    monkeypatch.setattr(audio_capture, "sd", fake, raising=False)
    return fake


def test_device_source_interleaves_blocks(fake_sounddevice, config, capsys):
    source = DeviceSource(config, device=3)
    stream = FakeInputStream.last

    assert stream.started
    assert stream.kwargs == dict(device=3, channels=4, samplerate=16000,
                                 blocksize=64, dtype='int16')

    first = source.read_block()
    assert first.dtype == np.int16
    assert first.shape == (4 * 64,)
    np.testing.assert_array_equal(first[:8], [0, 1, 2, 3, 10, 11, 12, 13])
    np.testing.assert_array_equal(first[0::4], np.arange(64) * 10)
    np.testing.assert_array_equal(first[3::4], np.arange(64) * 10 + 3)

    second = source.read_block()
    np.testing.assert_array_equal(second[:4], [640, 641, 642, 643])
    assert "input overflow" in capsys.readouterr().out

    source.close()
    assert stream.stopped and stream.closed
    assert source.read_block() is None


def test_device_source_open_failure(monkeypatch, fake_sounddevice, config):
    def broken(**kwargs):
        raise OSError("device busy")

    monkeypatch.setattr(fake_sounddevice, "InputStream", broken)

    with pytest.raises(RuntimeError, match="device busy"):
        DeviceSource(config)
