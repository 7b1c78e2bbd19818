"""
PanelConfig - Wiring, Bus and Timing Configuration
==================================================
Immutable settings for one panel: which board pins carry the four
control lines, how the SPI bus is clocked, and the reset / busy-wait
timing.

Pin names are attribute names of the Blinka ``board`` module
(``board.D25`` -> ``"D25"``). Durations are in seconds.

Example:
    from epd2in13.config import default_config

    config = default_config().replace(
        busy_timeout=5.0,
        on_busy_change=lambda busy: print("busy" if busy else "idle"),
    )
"""
import math
from dataclasses import dataclass, fields, replace as _replace
from typing import Any, Callable, Mapping

from .errors import ConfigError

# Raspberry Pi HAT wiring (BCM numbering)
DEFAULT_DC_PIN = "D25"
DEFAULT_CS_PIN = "D8"
DEFAULT_RST_PIN = "D17"
DEFAULT_BUSY_PIN = "D24"

DEFAULT_SPI_FREQUENCY = 1_000_000
DEFAULT_SPI_MODE = 0

DEFAULT_RESET_HOLD = 0.020
DEFAULT_RESET_DELAY = 0.002
DEFAULT_BUSY_POLL = 0.010
DEFAULT_BUSY_TIMEOUT = 10.0

_PIN_FIELDS = ("dc_pin", "cs_pin", "rst_pin", "busy_pin")
_DURATION_FIELDS = (
    "reset_hold_time",
    "reset_delay_time",
    "busy_poll_interval",
    "busy_timeout",
)

BusyCallback = Callable[[bool], None]


@dataclass(frozen=True)
class PanelConfig:
    """
    Panel wiring and timing.

    Attributes:
        dc_pin: Data/Command select pin name (low=command, high=data)
        cs_pin: Chip select pin name (active low)
        rst_pin: Reset pin name (active low)
        busy_pin: Busy status pin name (high while busy)
        spi_frequency: SPI clock in Hz
        spi_mode: SPI mode 0-3 (polarity = mode >> 1, phase = mode & 1)
        reset_hold_time: RST high hold before and after the pulse
        reset_delay_time: RST low pulse width
        busy_poll_interval: Spacing between BUSY reads
        busy_timeout: Maximum time to wait for BUSY to clear
        on_busy_change: Called with True when a busy wait starts and
            False when it ends. Runs on the calling thread; must not block.
    """
    dc_pin: str = DEFAULT_DC_PIN
    cs_pin: str = DEFAULT_CS_PIN
    rst_pin: str = DEFAULT_RST_PIN
    busy_pin: str = DEFAULT_BUSY_PIN

    spi_frequency: int = DEFAULT_SPI_FREQUENCY
    spi_mode: int = DEFAULT_SPI_MODE

    reset_hold_time: float = DEFAULT_RESET_HOLD
    reset_delay_time: float = DEFAULT_RESET_DELAY
    busy_poll_interval: float = DEFAULT_BUSY_POLL
    busy_timeout: float = DEFAULT_BUSY_TIMEOUT

    on_busy_change: BusyCallback | None = None

    def __post_init__(self):
        for name in _PIN_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, str) or not value:
                raise ConfigError(f"{name} must be a non-empty string")

        pins = [getattr(self, name) for name in _PIN_FIELDS]
        if len(set(pins)) != len(pins):
            raise ConfigError(f"pin names must be distinct, got {pins}")

        for name in _DURATION_FIELDS:
            value = getattr(self, name)
            if (not isinstance(value, (int, float)) or isinstance(value, bool)
                    or not math.isfinite(value) or value < 0):
                raise ConfigError(f"{name} must be a finite non-negative number, got {value!r}")

        if self.spi_frequency <= 0:
            raise ConfigError("spi_frequency must be positive")
        if self.spi_mode not in (0, 1, 2, 3):
            raise ConfigError(f"spi_mode must be 0-3, got {self.spi_mode}")
        if self.on_busy_change is not None and not callable(self.on_busy_change):
            raise ConfigError("on_busy_change must be callable")

    @property
    def pins(self) -> dict:
        """Role -> pin name mapping."""
        return {
            "DC": self.dc_pin,
            "CS": self.cs_pin,
            "RST": self.rst_pin,
            "BUSY": self.busy_pin,
        }

    @property
    def spi_polarity(self) -> int:
        return self.spi_mode >> 1

    @property
    def spi_phase(self) -> int:
        return self.spi_mode & 1

    def replace(self, **changes) -> "PanelConfig":
        """Return a validated copy with the given fields changed."""
        return _replace(self, **changes)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PanelConfig":
        """
        Build a config from a plain mapping (e.g. parsed JSON/TOML).

        Durations may be given in seconds under their field name or in
        milliseconds with an ``_ms`` suffix (``busy_timeout_ms=5000``).

        Raises:
            ConfigError: Unknown key or invalid value
        """
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            if key.endswith("_ms") and key[:-3] in _DURATION_FIELDS:
                try:
                    kwargs[key[:-3]] = float(value) / 1000
                except (TypeError, ValueError):
                    raise ConfigError(f"{key} must be a number, got {value!r}") from None
            elif key in known:
                kwargs[key] = value
            else:
                raise ConfigError(f"unknown config key {key!r}")
        return cls(**kwargs)


def default_config() -> PanelConfig:
    """Wiring and timing for the Waveshare 2.13" HAT on a Raspberry Pi."""
    return PanelConfig()
