"""
APA102 LED ring of the ReSpeaker 4-mic HAT.

The ring is an owned resource: create it around an SPI transport and the
GPIO line feeding the LED supply, power it up, draw, power it down. Nothing
here is global, so several rings (or fakes in tests) can coexist.

Wire format per update: 4 zero bytes, then per pixel
``0xE0 | brightness, blue, green, red``, then one zero byte.
"""

from typing import List, Optional, Protocol, Sequence

try:
    import spidev
    _HAS_SPIDEV = True
except ImportError:
    _HAS_SPIDEV = False

try:
    from gpiozero import LED as GpioOutput
    _HAS_GPIOZERO = True
except ImportError:
    _HAS_GPIOZERO = False

MAX_BRIGHTNESS = 31
START_FRAME = bytes(4)
END_FRAME = bytes(1)

# GPIO line switching the LED supply on the 4-mic HAT
POWER_PIN = 5

HEADING_BASE = (0, 24, 0)
HEADING_COLOR = (0, 0, 48)


class SpiTransport(Protocol):
    def xfer2(self, data: Sequence[int]) -> List[int]: ...
    def close(self) -> None: ...


class PowerLine(Protocol):
    def on(self) -> None: ...
    def off(self) -> None: ...
    def close(self) -> None: ...


def open_spidev(bus: int = 0, device: int = 1, speed_hz: int = 8000000) -> SpiTransport:
    """
    Open the SPI device driving the LEDs (/dev/spidev0.1 on the 4-mic HAT).

    Raises:
        RuntimeError: If the spidev package is not installed
    """
    if not _HAS_SPIDEV:
        raise RuntimeError("spidev not available. Install with: pip install spidev")

    spi = spidev.SpiDev()
    spi.open(bus, device)
    spi.max_speed_hz = speed_hz
    return spi


def open_power_line(pin: int = POWER_PIN) -> PowerLine:
    """
    Claim the GPIO output powering the LEDs.

    Raises:
        RuntimeError: If the gpiozero package is not installed
    """
    if not _HAS_GPIOZERO:
        raise RuntimeError("gpiozero not available. Install with: pip install gpiozero")
    return GpioOutput(pin)


class LedRing:
    """
    Ring of APA102 pixels.

    Args:
        transport: Object with xfer2()/close(), e.g. from open_spidev()
        num_leds: Number of pixels on the ring
        power: Object with on()/off()/close() switching the LED supply,
            e.g. from open_power_line()
    """

    def __init__(self, transport: Optional[SpiTransport] = None, num_leds: int = 12,
                 power: Optional[PowerLine] = None):
        if num_leds < 1:
            raise ValueError(f"num_leds must be at least 1, got {num_leds}")
        self.transport = transport
        self.power = power
        self.num_leds = num_leds
        self._pixels: Optional[bytearray] = None

    @property
    def powered_up(self) -> bool:
        return self._pixels is not None

    def power_up(self):
        """Switch the supply on, open the transport and allocate the pixel map."""
        if self.powered_up:
            raise RuntimeError("LED ring already powered up")
        if self.power is None:
            self.power = open_power_line()
        self.power.on()

        if self.transport is None:
            try:
                self.transport = open_spidev()
            except Exception:
                self._release_power()
                raise

        self._pixels = bytearray(self.num_leds * 4)
        self._fill_off()

    def power_down(self):
        """Turn all pixels off, release the transport and the supply."""
        if not self.powered_up:
            return
        try:
            self.clear()
        finally:
            self._pixels = None
            if self.transport is not None:
                self.transport.close()
                self.transport = None
            self._release_power()

    def _release_power(self):
        if self.power is not None:
            self.power.off()
            self.power.close()
            self.power = None

    def _check_powered(self):
        if not self.powered_up:
            raise RuntimeError("LED ring not powered up. Call power_up() first.")

    def _fill_off(self):
        for i in range(self.num_leds):
            self._pixels[i * 4:i * 4 + 4] = bytes((0xE0 | MAX_BRIGHTNESS, 0, 0, 0))

    def set_pixel(self, pixel: int, r: int, g: int, b: int, brightness: int = MAX_BRIGHTNESS):
        """Set one pixel; brightness outside 0..31 becomes 31."""
        self._check_powered()
        if not 0 <= pixel < self.num_leds:
            raise IndexError(f"Pixel {pixel} does not exist (ring has {self.num_leds})")
        if not 0 <= brightness <= MAX_BRIGHTNESS:
            brightness = MAX_BRIGHTNESS

        start = pixel * 4
        self._pixels[start] = 0xE0 | (brightness & 0x1F)
        self._pixels[start + 1] = b & 0xFF
        self._pixels[start + 2] = g & 0xFF
        self._pixels[start + 3] = r & 0xFF

    def frame(self) -> bytes:
        """Bytes the next show() sends over SPI."""
        self._check_powered()
        return START_FRAME + bytes(self._pixels) + END_FRAME

    def show(self):
        self._check_powered()
        self.transport.xfer2(list(self.frame()))

    def clear(self):
        """Turn all pixels off and push the update."""
        self._check_powered()
        self._fill_off()
        self.show()

    def heading_pixel(self, azimuth: float) -> int:
        """Pixel pointing at the given azimuth in degrees."""
        sector = 360.0 / self.num_leds
        return int((azimuth % 360.0) // sector) % self.num_leds

    def show_heading(self, azimuth: float):
        """Light the ring green with a bright blue pixel at the heading."""
        self._check_powered()
        pixel = self.heading_pixel(azimuth)

        for i in range(self.num_leds):
            self.set_pixel(i, *HEADING_BASE, brightness=1)

        self.set_pixel((pixel - 1) % self.num_leds, *HEADING_COLOR, brightness=1)
        self.set_pixel((pixel + 1) % self.num_leds, *HEADING_COLOR, brightness=1)
        self.set_pixel(pixel, *HEADING_COLOR, brightness=MAX_BRIGHTNESS)
        self.show()

    def __enter__(self):
        self.power_up()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.power_down()
        return False

    def __repr__(self):
        status = "on" if self.powered_up else "off"
        return f"LedRing(num_leds={self.num_leds}, status='{status}')"
