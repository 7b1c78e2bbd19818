"""
SSD1680 - 2.13" E-Paper Display Driver
======================================
Driver for the SSD1680 EPD controller on 2.13" 122x250 black/white panels
(Waveshare 2.13" V3/V4 HAT and compatibles).

Architecture
------------
This driver uses a layered architecture:
  - SPIDevice: Low-level SPI communication, framing, busy waits
  - DriverState: Lifecycle state machine
  - packer: Image to RAM byte layout
  - SSD1680: Command sequences

BW RAM (0x24) holds the image: 1=white, 0=black.

One SSD1680 instance owns its bus and pins. It is not thread-safe:
callers sharing a panel across threads must serialize access themselves.
"""
import logging

try:
    from typing import TYPE_CHECKING
    if TYPE_CHECKING:
        from ..hardware.spi import SPIDevice
except ImportError:
    pass

from ..buffer.packer import Window, pack, pack_window, pixels_from_image
from ..config import PanelConfig, default_config
from ..errors import EPDError, InvalidInputError
from .state import DisplayState, DriverState, RefreshMode
from . import commands as CMD
from . import sequences as SEQ

logger = logging.getLogger(__name__)


class SSD1680:
    """
    SSD1680 E-Paper Display Driver.

    Example:
        from epd2in13 import SSD1680

        with SSD1680.open() as epd:
            epd.clear()
            epd.draw_image(Image.open("photo.png"))
    """
    WIDTH = 122
    HEIGHT = 250
    STRIDE = 16                   # ceil(WIDTH / 8)
    BUFFER_SIZE = 4000            # STRIDE * HEIGHT

    def __init__(self, spi: "SPIDevice", config: PanelConfig | None = None):
        """
        Wrap an open SPIDevice. No bus traffic happens until ``init()``.

        Args:
            spi: Configured SPIDevice instance (ownership is taken)
            config: Timing and callback settings
        """
        self._spi = spi
        self._config = config or default_config()
        self._state = DriverState()

    @classmethod
    def open(cls, config: PanelConfig | None = None) -> "SSD1680":
        """
        Open the bus, claim the pins and run the power-on sequence.

        If any step fails the bus and pins are released before the error
        propagates.

        Args:
            config: Wiring and timing, defaults to ``default_config()``

        Returns:
            Driver in READY state
        """
        from ..hardware.spi import SPIDevice

        config = config or default_config()
        spi = SPIDevice.from_board(config)
        epd = cls(spi, config)
        try:
            epd.init()
        except BaseException:
            try:
                spi.deinit()
            except EPDError as exc:
                logger.warning("Release after failed init also failed: %s", exc)
            epd._state.advance(DisplayState.CLOSED)
            raise
        return epd

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
        return False

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def config(self) -> PanelConfig:
        return self._config

    @property
    def size(self) -> tuple[int, int]:
        """Panel (width, height) in pixels."""
        return self.WIDTH, self.HEIGHT

    @property
    def state(self) -> DriverState:
        return self._state

    @property
    def is_sleeping(self) -> bool:
        return self._state.is_sleeping

    @property
    def refresh_count(self) -> int:
        """Full refreshes since init."""
        return self._state.full_count

    @property
    def partial_count(self) -> int:
        """Partial refreshes since the last full refresh."""
        return self._state.partial_count

    # =========================================================================
    # Initialization
    # =========================================================================

    def init(self):
        """
        Reset the controller and load the register setup.

        Sequence: RST pulse, wait, SW reset, wait, driver output, data
        entry mode, full RAM window, border waveform, update control 1,
        wait.
        """
        self._state.require(DisplayState.UNINITIALIZED)
        logger.info("Initializing %dx%d panel", self.WIDTH, self.HEIGHT)

        self._state.advance(DisplayState.RESETTING)
        self._spi.hardware_reset(self._config)

        self._state.advance(DisplayState.AWAITING_BUSY_AFTER_RESET)
        self._wait("reset")
        self._spi.write_command(CMD.CMD_SW_RESET)
        self._wait("software reset")

        self._state.advance(DisplayState.INITIALIZING)

        # Gate driver for panel height
        h = self.HEIGHT - 1
        self._spi.write_command(CMD.CMD_DRIVER_OUTPUT, (h & 0xFF, (h >> 8) & 0xFF, 0x00))

        # Data entry mode: X increment, Y increment, X first
        self._spi.write_command(CMD.CMD_DATA_ENTRY, SEQ.DATA_ENTRY_INC)

        self._set_window(Window(0, 0, self.WIDTH - 1, self.HEIGHT - 1))

        self._spi.write_command(CMD.CMD_BORDER, SEQ.BORDER_FULL)
        self._spi.write_command(CMD.CMD_UPDATE_CTRL1, SEQ.UPDATE_CTRL1_NORMAL)
        self._wait("init")

        self._state.window = None
        self._state.advance(DisplayState.READY)

    def _wait(self, operation: str) -> float:
        return self._spi.wait_ready(self._config, operation=operation)

    def _set_window(self, window: Window):
        """Set RAM X (in bytes) and Y (in rows) address range."""
        self._spi.write_command(
            CMD.CMD_RAM_X,
            ((window.x_start >> 3) & 0xFF, (window.x_end >> 3) & 0xFF),
        )
        self._spi.write_command(CMD.CMD_RAM_Y, (
            window.y_start & 0xFF, (window.y_start >> 8) & 0xFF,
            window.y_end & 0xFF, (window.y_end >> 8) & 0xFF,
        ))

    def _set_cursor(self, x: int, y: int):
        """Point the RAM address counters at (x, y)."""
        self._spi.write_command(CMD.CMD_RAM_X_CNT, (x >> 3) & 0xFF)
        self._spi.write_command(CMD.CMD_RAM_Y_CNT, (y & 0xFF, (y >> 8) & 0xFF))

    def _restore_full_window(self):
        """Undo a partial window before a full-panel RAM write."""
        if self._state.window is None:
            return
        self._set_window(Window(0, 0, self.WIDTH - 1, self.HEIGHT - 1))
        self._set_cursor(0, 0)
        self._state.window = None

    # =========================================================================
    # Update Sequences
    # =========================================================================

    def _update(self, mode: int) -> float:
        """Execute display update sequence."""
        if mode == RefreshMode.PARTIAL:
            seq, op_name = SEQ.SEQ_PARTIAL, "partial refresh"
        else:
            seq, op_name = SEQ.SEQ_FULL, "full refresh"

        self._spi.write_command(CMD.CMD_UPDATE_CTRL2, seq)
        self._spi.write_command(CMD.CMD_ACTIVATE)

        self._state.advance(DisplayState.AWAITING_BUSY_AFTER_UPDATE)
        t = self._wait(op_name)
        self._state.on_refresh_complete(mode)
        logger.debug("%s took %.2fs", op_name, t)
        return t

    def _write_full(self, data) -> float:
        """Write a full-panel buffer and run a full refresh."""
        self._state.advance(DisplayState.WRITING)
        try:
            self._restore_full_window()
            self._spi.write_command(CMD.CMD_RAM_BLACK, data)
            return self._update(RefreshMode.FULL)
        except EPDError:
            self._state.abort()
            raise

    # =========================================================================
    # Public API
    # =========================================================================

    def clear(self, white: bool = True) -> float:
        """
        Fill the panel with one color using a full refresh.

        Returns:
            Refresh time in seconds
        """
        self._state.require(DisplayState.READY)
        fill = SEQ.WHITE_BYTE if white else SEQ.BLACK_BYTE
        data = bytes((fill,)) * self.BUFFER_SIZE
        logger.info("Clearing to %s", "white" if white else "black")
        return self._write_full(data)

    def draw_image(self, image) -> float:
        """
        Draw a full-panel image with a full refresh.

        Args:
            image: Pillow image or bool grid (``grid[y][x]`` True = dark),
                either WIDTH x HEIGHT or HEIGHT x WIDTH (rotated 90 degrees)

        Returns:
            Refresh time in seconds

        Raises:
            InvalidInputError: Any other image size (no bus traffic)
        """
        self._state.require(DisplayState.READY)
        grid, width, height = pixels_from_image(image)
        data = pack(grid, width, height, self.WIDTH, self.HEIGHT)
        logger.info("Drawing %dx%d image", width, height)
        return self._write_full(data)

    def display(self, data) -> float:
        """
        Write an already-packed buffer with a full refresh.

        Raises:
            InvalidInputError: Buffer is not BUFFER_SIZE bytes
        """
        self._state.require(DisplayState.READY)
        if len(data) != self.BUFFER_SIZE:
            raise InvalidInputError(
                f"Buffer must be {self.BUFFER_SIZE} bytes, got {len(data)}"
            )
        return self._write_full(data)

    def partial_draw_image(self, image, x: int, y: int) -> float:
        """
        Draw a sub-image at (x, y) with a partial refresh.

        The controller addresses X in bytes, so pixels sharing a byte
        with the sub-image but outside it are written white.

        Args:
            image: Pillow image or bool grid
            x: Left edge in panel pixels
            y: Top edge in panel pixels

        Returns:
            Refresh time in seconds

        Raises:
            InvalidInputError: Window outside the panel (no bus traffic)
        """
        self._state.require(DisplayState.READY)
        grid, width, height = pixels_from_image(image)
        window = Window.for_image(x, y, width, height, self.WIDTH, self.HEIGHT)
        data = pack_window(grid, window)
        logger.info("Partial draw %dx%d at (%d, %d)", width, height, x, y)

        self._state.advance(DisplayState.WRITING)
        # Recorded first so a half-set window is restored on the next full write
        self._state.window = window
        try:
            self._set_window(window)
            self._set_cursor(window.x_start, window.y_start)
            self._spi.write_command(CMD.CMD_RAM_BLACK, data)
            return self._update(RefreshMode.PARTIAL)
        except EPDError:
            self._state.abort()
            raise

    # =========================================================================
    # Power Management
    # =========================================================================

    def sleep(self):
        """
        Enter deep sleep mode.

        The controller accepts the command immediately, so BUSY is not
        polled. Waking requires a new driver (reset + init).
        """
        self._state.require(DisplayState.READY)
        self._spi.write_command(CMD.CMD_DEEP_SLEEP, SEQ.SLEEP_MODE_1)
        self._state.advance(DisplayState.SLEEPING)
        logger.info("Panel in deep sleep")

    def close(self):
        """
        Put the panel to sleep (unless it already sleeps) and release the bus.

        Sleep is attempted from any state, including after a failed init.
        The bus is released even if the sleep command fails; the first
        error is raised afterwards. Calling close() again does nothing.
        """
        if self._state.is_closed:
            return

        error = None
        if not self._state.is_sleeping:
            try:
                if self._state.is_ready:
                    self.sleep()
                else:
                    self._spi.write_command(CMD.CMD_DEEP_SLEEP, SEQ.SLEEP_MODE_1)
            except EPDError as exc:
                logger.warning("Sleep before close failed: %s", exc)
                error = exc
        try:
            self._spi.deinit()
        except EPDError as exc:
            logger.warning("Releasing bus failed: %s", exc)
            if error is None:
                error = exc
        self._state.advance(DisplayState.CLOSED)
        logger.info("Panel closed")
        if error is not None:
            raise error
