"""
Hardware abstraction layer.

Modules:
    spi: SPI bus, control pins, command framing and busy waits
"""
from .spi import SPIDevice

__all__ = ["SPIDevice"]
