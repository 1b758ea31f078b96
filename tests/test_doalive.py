"""
Tests for the capture -> trigger -> estimate loop
"""

import json

import numpy as np
import pytest

from respeaker_doa.audio_capture import write_wav
from respeaker_doa.config import ArrayConfig
from respeaker_doa.doalive import DoaLive
from respeaker_doa.led_ring import LedRing
from respeaker_doa.simulate import noise_recording
from respeaker_doa.trigger import EnergyTrigger

FRAMES = 1024


@pytest.fixture
def config():
    return ArrayConfig(frame_length=FRAMES)


@pytest.fixture
def capture(tmp_path, config):
    """Silent block, then a block from straight ahead, then silence again."""
    silence = np.zeros(4 * FRAMES, dtype=np.int16)
    sound = noise_recording((0, 0, 0, 0), n=FRAMES, seed=11)
    path = tmp_path / "capture.wav"
    write_wav(str(path), np.concatenate([silence, sound, silence]), config)
    return str(path)


class FakeSpi:
    def __init__(self):
        self.transfers = []

    def xfer2(self, data):
        self.transfers.append(bytes(data))

    def close(self):
        pass


class FakePower:
    def on(self):
        pass

    def off(self):
        pass

    def close(self):
        pass


def test_run_blocking_with_energy_trigger(tmp_path, config, capture):
    detections = []
    output = tmp_path / "results.jsonl"

    with DoaLive(config) as live:
        live.set_source_wav(capture)
        live.set_trigger(EnergyTrigger(threshold_dbfs=-40.0))
        live.set_direction_callback(lambda ts, az: detections.append((ts, az)))
        live.add_sink_file("results", str(output))
        live.run_blocking()

        assert live.blocks_processed == 3
        assert live.detections == 1

    assert len(detections) == 1
    timestamp, azimuth = detections[0]
    assert timestamp == pytest.approx(FRAMES / 16000)
    assert azimuth == pytest.approx(30.0)

    lines = output.read_text().splitlines()
    assert [json.loads(line) for line in lines] == [{'timeStamp': timestamp, 'azimuth': azimuth}]


def test_every_block_without_trigger(config, capture):
    azimuths = []

    with DoaLive(config) as live:
        live.set_source_wav(capture)
        live.set_direction_callback(lambda ts, az: azimuths.append(az))
        live.run_blocking()

    assert len(azimuths) == 3
    assert all(0.0 <= az < 360.0 for az in azimuths)


def test_led_ring_follows_heading(config, capture):
    spi = FakeSpi()
    ring = LedRing(spi, num_leds=12, power=FakePower())
    ring.power_up()

    with DoaLive(config) as live:
        live.set_source_wav(capture)
        live.set_trigger(EnergyTrigger(threshold_dbfs=-40.0))
        live.set_led_ring(ring)
        live.run_blocking()

    # heading 30 degrees lights pixel 1
    frame = spi.transfers[-1]
    assert frame[4 + 4:4 + 8] == bytes((0xFF, 48, 0, 0))
    ring.power_down()


def test_stdout_sink(capsys, config):
    live = DoaLive(config)
    live.add_sink_stdout("console")

    azimuth = live.process_block(noise_recording((0, 0, 0, 0), n=FRAMES, seed=12))
    live.close()

    assert azimuth == pytest.approx(30.0)
    assert '"azimuth": 30.0' in capsys.readouterr().out


def test_background_thread(config, capture):
    azimuths = []

    live = DoaLive(config)
    live.set_source_wav(capture)
    live.set_direction_callback(lambda ts, az: azimuths.append(az))
    live.start()
    live.thread.join(timeout=10.0)
    live.close()

    assert not live.running
    assert len(azimuths) == 3


def test_short_block_is_skipped(config):
    live = DoaLive(config)

    with pytest.raises(ValueError):
        live.process_block(np.zeros(12, dtype=np.int16))


def test_requires_source(config):
    live = DoaLive(config)
    with pytest.raises(RuntimeError):
        live.run_blocking()
    with pytest.raises(RuntimeError):
        live.start()


class BrokenSpi(FakeSpi):
    def xfer2(self, data):
        raise OSError("SPI write failed")


def test_block_errors_do_not_stop_loop(capsys, config, capture):
    calls = []

    def flaky_trigger(channel_0):
        calls.append(len(calls))
        if len(calls) == 1:
            raise RuntimeError("trigger backend gone")
        return True

    with DoaLive(config) as live:
        live.set_source_wav(capture)
        live.set_trigger(flaky_trigger)
        live.run_blocking()

        assert live.blocks_processed == 3
        assert live.detections == 2

    assert "Skipping block 1: trigger backend gone" in capsys.readouterr().out


def test_led_write_errors_are_skipped(capsys, config, capture):
    ring = LedRing(BrokenSpi(), num_leds=12, power=FakePower())
    ring.power_up()
    azimuths = []

    with DoaLive(config) as live:
        live.set_source_wav(capture)
        live.set_led_ring(ring)
        live.set_direction_callback(lambda ts, az: azimuths.append(az))
        live.run_blocking()

        assert live.blocks_processed == 3

    assert len(azimuths) == 3
    assert capsys.readouterr().out.count("SPI write failed") == 3
