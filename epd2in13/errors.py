"""
Error Types
===========
Exception hierarchy raised by the driver.

Every error derives from EPDError and from the closest builtin, so callers
can catch either the driver-specific type or the generic one:

    EPDError
    ├── TransportError      (RuntimeError)   bus / pin I/O failed
    │   └── PinResolutionError (LookupError) named pin not found
    ├── BusyTimeoutError    (TimeoutError)   BUSY never went low
    ├── InvalidInputError   (ValueError)     bad image size / window
    ├── InvalidStateError   (RuntimeError)   operation not allowed now
    └── ConfigError         (ValueError)     PanelConfig invariant broken
"""


class EPDError(Exception):
    """Base class for all driver errors."""


class TransportError(EPDError, RuntimeError):
    """SPI write or GPIO access failed."""


class PinResolutionError(TransportError, LookupError):
    """A configured pin name does not exist on this board."""

    def __init__(self, role: str, name: str):
        super().__init__(f"{role} pin {name!r} not found on board")
        self.role = role
        self.name = name


class BusyTimeoutError(EPDError, TimeoutError):
    """The BUSY line stayed high past the configured timeout."""

    def __init__(self, timeout: float, operation: str | None = None):
        op_str = f" during {operation}" if operation else ""
        super().__init__(f"EPD timeout{op_str} (>{timeout}s)")
        self.timeout = timeout
        self.operation = operation


class InvalidInputError(EPDError, ValueError):
    """Image dimensions or window bounds violate panel constraints."""


class InvalidStateError(EPDError, RuntimeError):
    """Operation is not valid in the driver's current state."""


class ConfigError(EPDError, ValueError):
    """PanelConfig field failed validation."""
