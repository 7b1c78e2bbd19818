"""
Display driver layer.
"""
from .state import DisplayState, DriverState, RefreshMode
from .ssd1680 import SSD1680

__all__ = [
    "DisplayState",
    "DriverState",
    "RefreshMode",
    "SSD1680",
]
