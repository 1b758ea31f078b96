"""
Command line front end: estimate directions from a WAV capture or live.
"""

import argparse
import sys
import time
from typing import List, Optional

from .audio_capture import list_input_devices
from .config import load_config
from .doalive import DoaLive
from .led_ring import LedRing
from .trigger import AlwaysTrigger, EnergyTrigger


def _print_direction(timestamp: float, azimuth: float):
    print(f"{timestamp:8.3f}s  direction estimate is: {azimuth:.1f}")


def run_wav(args) -> int:
    config = load_config(args.config)

    with DoaLive(config) as live:
        try:
            live.set_source_wav(args.wav_file)
        except (OSError, ValueError) as e:
            print(f"Error: cannot read {args.wav_file}: {e}")
            return 1

        if args.all_blocks:
            live.set_trigger(AlwaysTrigger())
        else:
            live.set_trigger(EnergyTrigger(args.threshold))
        live.set_direction_callback(_print_direction)
        if args.output:
            live.add_sink_file('output', args.output)

        live.run_blocking()
        print(f"\nProcessed {live.blocks_processed} block(s), {live.detections} estimate(s)")

    return 0


def run_live(args) -> int:
    config = load_config(args.config)
    led_ring = None

    with DoaLive(config) as live:
        try:
            device = args.device
            if device is not None and device.isdigit():
                device = int(device)
            live.set_source_device(device)
        except (RuntimeError, ValueError) as e:
            print(f"Error: {e}")
            return 1

        live.set_trigger(EnergyTrigger(args.threshold, args.holdoff))
        live.set_direction_callback(_print_direction)

        if args.led:
            try:
                led_ring = LedRing(num_leds=config.num_leds)
                led_ring.power_up()
            except (RuntimeError, OSError) as e:
                print(f"Error: cannot power up LED ring: {e}")
                return 1
            live.set_led_ring(led_ring)

        try:
            live.start()
            print("Press Ctrl+C to stop...")
            while live.running:
                time.sleep(0.1)
        except KeyboardInterrupt:
            pass
        finally:
            live.stop()
            if led_ring is not None:
                led_ring.power_down()

    return 0


def run_devices(args) -> int:
    devices = list_input_devices()

    if not devices:
        print("No audio input devices found")
        return 1

    print(f"{'Index':<6} {'Channels':<10} {'Sample Rate':<12} {'Name'}")
    for dev in devices:
        print(f"{dev['index']:<6} {dev['channels']:<10} {dev['sample_rate']:<12} {dev['name']}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='respeaker-doa',
        description='Direction of arrival on a 4-mic circular array',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument('--config', '-c', default=None,
                        help='Array config JSON (default: packaged ReSpeaker 4-mic)')
    sub = parser.add_subparsers(dest='command', required=True)

    wav = sub.add_parser('wav', help='Estimate directions in a 4-channel WAV file')
    wav.add_argument('wav_file', help='Input WAV file (4 ch, 16-bit)')
    trigger = wav.add_mutually_exclusive_group()
    trigger.add_argument('--threshold', '-t', type=float, default=-40.0,
                         help='Only estimate blocks at or above this level (dBFS)')
    trigger.add_argument('--all-blocks', '-a', action='store_true',
                         help='Estimate every block, ignoring the level')
    wav.add_argument('--output', '-o', help='Write JSON lines results to this file')
    wav.set_defaults(func=run_wav)

    live = sub.add_parser('live', help='Estimate from a live capture device')
    live.add_argument('--device', '-d', default=None,
                      help='Capture device name substring, e.g. "seeed"')
    live.add_argument('--threshold', '-t', type=float, default=-40.0,
                      help='Trigger level in dBFS')
    live.add_argument('--holdoff', type=int, default=2,
                      help='Blocks to skip after a detection')
    live.add_argument('--led', action='store_true', help='Show headings on the LED ring')
    live.set_defaults(func=run_live)

    devices = sub.add_parser('devices', help='List audio input devices')
    devices.set_defaults(func=run_devices)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())
