"""
Buffer subsystem - packed pixel buffers and image conversion.

Modules:
    framebuffer: Packed 1-bit buffer in panel RAM layout
    packer: Image classification, rotation and packing
"""
from .framebuffer import PixelBuffer, BLACK, WHITE, row_stride
from .packer import Window, is_dark, pack, pack_window, pixels_from_image, unpack

__all__ = [
    "PixelBuffer",
    "Window",
    "BLACK",
    "WHITE",
    "row_stride",
    "is_dark",
    "pack",
    "pack_window",
    "pixels_from_image",
    "unpack",
]
