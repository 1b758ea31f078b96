"""
Live direction-of-arrival loop.

Reads interleaved blocks from a capture source, asks a trigger whether the
block is worth estimating, and hands each heading to callbacks, result sinks
and optionally the LED ring.
"""

import json
import threading
import traceback
from pathlib import Path
from typing import Optional, Dict, Any, Callable, Union

import numpy as np

from .audio_capture import AudioSource, WavFileSource, DeviceSource
from .config import ArrayConfig, load_config
from .doa_processor import DOAProcessor
from .led_ring import LedRing
from .trigger import AlwaysTrigger


class ResultSink:
    """Base class for result sinks"""

    def write(self, data: Dict[str, Any]):
        """Write result data"""
        raise NotImplementedError()

    def close(self):
        """Close sink"""
        pass


class FileSink(ResultSink):
    """Write results to file, one JSON object per line"""

    def __init__(self, filename: str):
        self.filename = filename
        self.file = open(filename, 'w')

    def write(self, data: Dict[str, Any]):
        json.dump(data, self.file)
        self.file.write('\n')
        self.file.flush()

    def close(self):
        if self.file:
            self.file.close()
            self.file = None


class StdoutSink(ResultSink):
    """Print results to stdout"""

    def write(self, data: Dict[str, Any]):
        print(json.dumps(data))


class DoaLive:
    """
    Capture → trigger → estimate loop.

    Example:
        >>> with DoaLive() as live:
        ...     live.set_source_wav("capture_4ch.wav")
        ...     live.add_sink_stdout("console")
        ...     live.run_blocking()
    """

    def __init__(self, config: Optional[Union[ArrayConfig, str, Path]] = None):
        if config is None:
            config = load_config()
        elif not isinstance(config, ArrayConfig):
            config = ArrayConfig.from_json(config)

        self.config = config
        self.processor = DOAProcessor(config)

        self.source: Optional[AudioSource] = None
        self.sinks: Dict[str, ResultSink] = {}
        self.trigger: Callable[[np.ndarray], bool] = AlwaysTrigger()
        self.led_ring: Optional[LedRing] = None
        self.direction_callback: Optional[Callable[[float, float], None]] = None

        self.running = False
        self.thread: Optional[threading.Thread] = None
        self.blocks_processed = 0
        self.detections = 0

    def set_source(self, source: AudioSource):
        self.source = source

    def set_source_wav(self, filename: str):
        """Set WAV file as audio source"""
        self.source = WavFileSource(self.config, filename)

    def set_source_device(self, device: Optional[Union[int, str]] = None):
        """
        Set a live capture device as audio source

        Args:
            device: Device index, name substring (e.g. "seeed") or None for default
        """
        self.source = DeviceSource(self.config, device)

    def set_trigger(self, trigger: Callable[[np.ndarray], bool]):
        """Set the callable deciding which blocks get estimated"""
        self.trigger = trigger

    def set_led_ring(self, led_ring: LedRing):
        """Show headings on an LED ring; the ring must already be powered up"""
        self.led_ring = led_ring

    def set_direction_callback(self, callback: Callable[[float, float], None]):
        """Set callback receiving (timestamp, azimuth) for each detection"""
        self.direction_callback = callback

    def add_sink_file(self, name: str, filename: str):
        """Add file sink for results"""
        self.sinks[name] = FileSink(filename)

    def add_sink_stdout(self, name: str):
        """Add stdout sink for results"""
        self.sinks[name] = StdoutSink()

    def process_block(self, block: np.ndarray) -> Optional[float]:
        """
        Run trigger and estimator on one block.

        Returns:
            The azimuth if the trigger fired, else None
        """
        timestamp = self.blocks_processed * self.config.frame_length / float(self.config.sample_rate)
        self.blocks_processed += 1

        channel_0 = np.asarray(block)[0::self.config.num_channels]
        if not self.trigger(channel_0):
            return None

        azimuth = self.processor.estimate_direction(block)
        self.detections += 1

        if self.direction_callback:
            self.direction_callback(timestamp, azimuth)

        results = {'timeStamp': timestamp, 'azimuth': azimuth}
        for sink in self.sinks.values():
            sink.write(results)

        if self.led_ring is not None:
            self.led_ring.show_heading(azimuth)

        return azimuth

    def _process_loop(self):
        """Main processing loop"""
        if not self.source:
            raise RuntimeError("No audio source configured")

        while self.running:
            block = self.source.read_block()
            if block is None:
                # End of stream
                break

            try:
                self.process_block(block)
            except (ValueError, RuntimeError, OSError) as e:
                # bad block, trigger or LED failure
                print(f"Skipping block {self.blocks_processed}: {e}")

        self.running = False

    def _thread_main(self):
        try:
            self._process_loop()
        except Exception as e:
            print(f"Processing loop error: {e}")
            traceback.print_exc()
            self.running = False

    def start(self):
        """Start processing in background thread"""
        if self.running:
            raise RuntimeError("Already running")
        if not self.source:
            raise RuntimeError("No audio source configured")

        self.running = True
        self.thread = threading.Thread(target=self._thread_main, daemon=True)
        self.thread.start()

    def stop(self):
        """Stop processing"""
        if not self.running and self.thread is None:
            return

        self.running = False
        if self.thread:
            self.thread.join(timeout=5.0)
            self.thread = None

    def run_blocking(self):
        """Run processing in current thread (blocking)"""
        if not self.source:
            raise RuntimeError("No audio source configured")

        self.running = True
        self._process_loop()

    def close(self):
        """Close all resources"""
        self.stop()

        if self.source:
            self.source.close()
            self.source = None

        for sink in self.sinks.values():
            sink.close()
        self.sinks = {}

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
