"""
SPIDevice - Low-Level SPI Communication for the EPD Controller
==============================================================
Handles all direct hardware interaction: SPI bus, GPIO pins, timing.

This class encapsulates:
- SPI bus configuration and transactions (Adafruit Blinka ``busio``)
- GPIO pin management (CS, DC, RST, BUSY) via ``digitalio``
- Command/data framing on the D/C and CS lines
- Hardware reset pulse
- Busy-wait polling with timeout and busy-change notification

Separating this from the display driver allows:
- Easier testing (hand the driver fake bus and pin objects)
- Cleaner driver code (focus on command sequences)
"""
import logging
import time

try:
    from typing import TYPE_CHECKING
    if TYPE_CHECKING:
        from digitalio import DigitalInOut
        from busio import SPI
except ImportError:
    pass

from ..config import PanelConfig
from ..drivers import commands as CMD
from ..errors import BusyTimeoutError, PinResolutionError, TransportError

logger = logging.getLogger(__name__)

# Errors Blinka raises for bus and pin I/O failures
_IO_ERRORS = (OSError, RuntimeError)


class SPIDevice:
    """
    Low-level SPI communication handler for the SSD1680.

    Manages the SPI bus and control pins for e-paper communication.
    Provides methods for sending commands/data and waiting for the
    display to become ready.

    Attributes:
        LOCK_TIMEOUT: Seconds to wait for the shared SPI bus lock
    """
    LOCK_TIMEOUT = 1.0

    def __init__(
        self,
        spi: "SPI",
        cs: "DigitalInOut",
        dc: "DigitalInOut",
        rst: "DigitalInOut",
        busy: "DigitalInOut",
    ):
        """
        Initialize the SPI device from already-configured hardware.

        Args:
            spi: Configured SPI bus instance
            cs: Chip Select pin (active low)
            dc: Data/Command pin (low=command, high=data)
            rst: Reset pin (active low)
            busy: Busy status pin (high when busy)
        """
        self.spi = spi
        self.cs = cs
        self.dc = dc
        self.rst = rst
        self.busy = busy
        self._closed = False

        self._cmd_buf = bytearray(1)

    @classmethod
    def from_board(cls, config: PanelConfig) -> "SPIDevice":
        """
        Open the SPI bus and claim the four control pins.

        Pin names are looked up on the Blinka ``board`` module before
        anything is opened, so an unknown name leaks nothing. If claiming
        a pin fails, every resource acquired so far is released before
        the error propagates.

        Args:
            config: Pin names and bus settings

        Returns:
            Configured SPIDevice instance

        Raises:
            PinResolutionError: A pin name is not defined for this board
            TransportError: The bus or a pin could not be opened
        """
        import board
        import busio
        import digitalio

        pins = {}
        wanted = dict(config.pins, SCK="SCK", MOSI="MOSI")
        for role, pin_name in wanted.items():
            try:
                pins[role] = getattr(board, pin_name)
            except AttributeError:
                raise PinResolutionError(role, pin_name) from None

        acquired = []
        try:
            spi = busio.SPI(pins["SCK"], MOSI=pins["MOSI"])
            acquired.append(spi)
            start = time.monotonic()
            while not spi.try_lock():
                if time.monotonic() - start > cls.LOCK_TIMEOUT:
                    raise TransportError("SPI lock timeout during initialization")
            try:
                spi.configure(
                    baudrate=config.spi_frequency,
                    polarity=config.spi_polarity,
                    phase=config.spi_phase,
                )
            finally:
                spi.unlock()

            cs = digitalio.DigitalInOut(pins["CS"])
            acquired.append(cs)
            cs.direction = digitalio.Direction.OUTPUT
            cs.value = True  # Deselected (active low)

            dc = digitalio.DigitalInOut(pins["DC"])
            acquired.append(dc)
            dc.direction = digitalio.Direction.OUTPUT
            dc.value = True  # Default to data mode

            rst = digitalio.DigitalInOut(pins["RST"])
            acquired.append(rst)
            rst.direction = digitalio.Direction.OUTPUT
            rst.value = True  # Not in reset

            busy = digitalio.DigitalInOut(pins["BUSY"])
            acquired.append(busy)
            busy.direction = digitalio.Direction.INPUT
        except _IO_ERRORS as exc:
            _release(acquired)
            if isinstance(exc, TransportError):
                raise
            raise TransportError(f"opening SPI/GPIO failed: {exc}") from exc
        except BaseException:
            _release(acquired)
            raise

        logger.info(
            "Opened SPI at %d Hz mode %d (DC=%s CS=%s RST=%s BUSY=%s)",
            config.spi_frequency, config.spi_mode,
            config.dc_pin, config.cs_pin, config.rst_pin, config.busy_pin,
        )
        return cls(spi, cs, dc, rst, busy)

    def deinit(self):
        """
        Release all hardware resources.

        Every resource is released even if one fails; the first failure
        is raised afterwards. Calling again is a no-op.
        """
        if self._closed:
            return
        self._closed = True
        error = _release([self.spi, self.cs, self.dc, self.rst, self.busy])
        if error is not None:
            raise TransportError(f"releasing SPI/GPIO failed: {error}") from error
        logger.debug("SPI and GPIO released")

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.deinit()
        return False

    @property
    def is_closed(self) -> bool:
        return self._closed

    # =========================================================================
    # Pin Access
    # =========================================================================

    def _set_pin(self, pin, level: bool, role: str):
        try:
            pin.value = level
        except _IO_ERRORS as exc:
            raise TransportError(f"{role} pin set failed: {exc}") from exc

    def _read_pin(self, pin, role: str) -> bool:
        try:
            return bool(pin.value)
        except _IO_ERRORS as exc:
            raise TransportError(f"{role} pin read failed: {exc}") from exc

    @property
    def is_busy(self) -> bool:
        """Check if display is currently busy (BUSY high)."""
        return self._read_pin(self.busy, "BUSY")

    # =========================================================================
    # Command / Data Framing
    # =========================================================================

    def _transfer(self, data, is_data: bool):
        """
        One CS-bracketed write.

        D/C is set before CS goes low and held until CS goes high again.
        """
        start = time.monotonic()
        while not self.spi.try_lock():
            if time.monotonic() - start > self.LOCK_TIMEOUT:
                raise TransportError("SPI lock timeout")
        try:
            self._set_pin(self.dc, is_data, "DC")
            self._set_pin(self.cs, False, "CS")
            try:
                self.spi.write(data)
            except _IO_ERRORS as exc:
                kind = "data" if is_data else "command"
                raise TransportError(f"{kind} transmission failed: {exc}") from exc
            finally:
                self._set_pin(self.cs, True, "CS")
        finally:
            self.spi.unlock()

    def send_command(self, cmd: int):
        """Send one opcode byte with D/C low."""
        self._cmd_buf[0] = cmd
        self._transfer(self._cmd_buf, is_data=False)

    def send_data(self, value: int):
        """Send one data byte with D/C high."""
        self._transfer(bytes((value & 0xFF,)), is_data=True)

    def send_data_bulk(self, data):
        """Send a block of data bytes with D/C high in a single transfer."""
        self._transfer(data, is_data=True)

    def write_command(self, cmd: int, data=None):
        """
        Send a command followed by its payload.

        The payload length is checked against the command table. Small
        payloads go out one byte per transfer; RAM writes go out as one
        bulk transfer.

        Args:
            cmd: Command byte (0x00-0xFF)
            data: None, int, tuple of ints, or bytes/bytearray
        """
        if data is None:
            payload = b""
        elif isinstance(data, int):
            payload = bytes((data,))
        else:
            payload = data
        CMD.check_payload(cmd, len(payload))

        logger.debug("cmd %s (%d data bytes)", CMD.name(cmd), len(payload))
        self.send_command(cmd)
        if CMD.PAYLOAD_SIZES[cmd] == CMD.BULK:
            self.send_data_bulk(payload)
        else:
            for b in payload:
                self.send_data(b)

    # =========================================================================
    # Reset / Busy
    # =========================================================================

    def hardware_reset(self, config: PanelConfig):
        """
        Pulse the RST line: high, low, high.

        Holds ``reset_hold_time`` before and after the low pulse of
        ``reset_delay_time``.
        """
        self._set_pin(self.rst, True, "RST")
        time.sleep(config.reset_hold_time)
        self._set_pin(self.rst, False, "RST")
        time.sleep(config.reset_delay_time)
        self._set_pin(self.rst, True, "RST")
        time.sleep(config.reset_hold_time)

    def wait_ready(self, config: PanelConfig, operation: str | None = None) -> float:
        """
        Wait for the display to finish processing (BUSY goes low).

        ``config.on_busy_change`` is called with True on entry and with
        False exactly once on exit, whether the wait succeeds or not.

        Args:
            config: Poll interval, timeout and optional callback
            operation: Optional operation name for logs and errors

        Returns:
            Time spent waiting in seconds

        Raises:
            BusyTimeoutError: BUSY still high after ``config.busy_timeout``
            TransportError: BUSY pin could not be read
        """
        callback = config.on_busy_change
        if callback is not None:
            callback(True)
        try:
            start = time.monotonic()
            deadline = start + config.busy_timeout
            while self.is_busy:
                now = time.monotonic()
                if now >= deadline:
                    raise BusyTimeoutError(config.busy_timeout, operation)
                time.sleep(min(config.busy_poll_interval, deadline - now))
            elapsed = time.monotonic() - start
            logger.debug("ready after %.3fs (%s)", elapsed, operation or "wait")
            return elapsed
        finally:
            if callback is not None:
                callback(False)


def _release(resources) -> Exception | None:
    """Deinit every resource, returning the first error raised."""
    first = None
    for res in reversed(resources):
        try:
            res.deinit()
        except _IO_ERRORS as exc:
            logger.warning("Failed to release %r: %s", res, exc)
            if first is None:
                first = exc
    return first
