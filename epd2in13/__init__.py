"""
epd2in13 - SSD1680 2.13" E-Paper Driver
=======================================
Driver for 122x250 black/white e-paper panels with the SSD1680
controller, wired to a Linux SBC (Raspberry Pi and friends) through
Adafruit Blinka.

Architecture
------------
The library is organized into layers:

    SSD1680            Command sequences + lifecycle state
       │
       ├── packer          Image -> RAM bytes (rotation, threshold)
       │      │
       │      └── PixelBuffer    Packed 1-bit buffer
       │
       └── SPIDevice       Bus, pins, command framing, busy waits

Quick Start
-----------
    from epd2in13 import SSD1680

    with SSD1680.open() as epd:
        epd.clear()
        epd.draw_image(Image.open("photo.png"))

Advanced Usage
--------------
    # Custom wiring and busy notification
    from epd2in13 import PanelConfig, SSD1680

    config = PanelConfig(dc_pin="D22", on_busy_change=print)
    epd = SSD1680.open(config)
    try:
        epd.partial_draw_image(icon, 8, 40)
    finally:
        epd.close()

Module Structure
----------------
    epd2in13/
    ├── config.py            PanelConfig
    ├── errors.py            Exception hierarchy
    ├── buffer/
    │   ├── framebuffer.py   PixelBuffer
    │   └── packer.py        Image packing
    ├── drivers/
    │   ├── ssd1680.py       SSD1680 controller driver
    │   ├── commands.py      Command constants
    │   ├── sequences.py     Register values
    │   └── state.py         Driver state machine
    └── hardware/
        └── spi.py           SPI communication layer
"""

from .buffer import PixelBuffer, Window, pack, unpack, pixels_from_image
from .config import PanelConfig, default_config
from .drivers import SSD1680, DisplayState, DriverState
from .errors import (
    EPDError,
    TransportError,
    PinResolutionError,
    BusyTimeoutError,
    InvalidInputError,
    InvalidStateError,
    ConfigError,
)
from .hardware import SPIDevice

__all__ = [
    # Driver
    "SSD1680",
    "DisplayState",
    "DriverState",
    # Config
    "PanelConfig",
    "default_config",
    # Hardware
    "SPIDevice",
    # Buffers
    "PixelBuffer",
    "Window",
    "pack",
    "unpack",
    "pixels_from_image",
    # Errors
    "EPDError",
    "TransportError",
    "PinResolutionError",
    "BusyTimeoutError",
    "InvalidInputError",
    "InvalidStateError",
    "ConfigError",
]

__version__ = "1.0.0"
