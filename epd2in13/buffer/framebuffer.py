"""
PixelBuffer - Packed 1-bit Panel Buffer
=======================================
Byte layout expected by the SSD1680 BW RAM:

- Row-major, one bit per pixel
- Row stride = ceil(width / 8) bytes, unused tail bits padded
- Most significant bit is the leftmost pixel of each byte
- Bit 1 = white (light), bit 0 = black (dark)
"""

# =============================================================================
# Color Constants
# =============================================================================

BLACK = 0
WHITE = 1

# =============================================================================
# Bit Manipulation Constants
# =============================================================================

_BITS_PER_BYTE = 8
_BYTE_MASK = 0xFF
_BYTE_ZERO = 0x00

# =============================================================================
# Internal Lookup Tables
# =============================================================================

_BIT_MASKS = tuple(1 << (7 - i) for i in range(_BITS_PER_BYTE))
_INV_MASKS = tuple(~(1 << (7 - i)) & _BYTE_MASK for i in range(_BITS_PER_BYTE))


def row_stride(width: int) -> int:
    """Bytes per packed row for ``width`` pixels."""
    return (width + _BITS_PER_BYTE - 1) // _BITS_PER_BYTE


class PixelBuffer:
    """
    Packed monochrome buffer.

    Coordinates are physical panel coordinates; there is no rotation
    at this level (see ``packer.pack`` for orientation handling).
    """

    def __init__(self, width: int, height: int, color: int = WHITE):
        if width <= 0 or height <= 0:
            raise ValueError(f"buffer size must be positive, got {width}x{height}")
        self._w = width
        self._h = height
        self._row_bytes = row_stride(width)
        self._buffer_size = self._row_bytes * height
        self._buffer = bytearray(self._buffer_size)
        if color == WHITE:
            self.fill(WHITE)

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def width(self) -> int: return self._w

    @property
    def height(self) -> int: return self._h

    @property
    def stride(self) -> int: return self._row_bytes

    @property
    def buffer(self) -> bytearray: return self._buffer

    def __len__(self) -> int:
        return self._buffer_size

    def __bytes__(self) -> bytes:
        return bytes(self._buffer)

    # =========================================================================
    # Pixel Ops
    # =========================================================================

    def set_pixel(self, x: int, y: int, color: int) -> None:
        """Set pixel (no bounds check)."""
        idx = y * self._row_bytes + (x >> 3)
        if color: self._buffer[idx] |= _BIT_MASKS[x & 7]
        else: self._buffer[idx] &= _INV_MASKS[x & 7]

    def get_pixel(self, x: int, y: int) -> int:
        idx = y * self._row_bytes + (x >> 3)
        return WHITE if (self._buffer[idx] & _BIT_MASKS[x & 7]) else BLACK

    def fill(self, color: int) -> None:
        """Set every byte, padding bits included, to one color."""
        fill = _BYTE_MASK if color else _BYTE_ZERO
        self._buffer[:] = bytes((fill,)) * self._buffer_size

    def is_uniform(self) -> bool:
        """True when every byte holds the same value."""
        first = self._buffer[0]
        return self._buffer.count(first) == self._buffer_size

    # =========================================================================
    # Region Extraction
    # =========================================================================

    def get_window(self, x_start: int, y_start: int, x_end: int, y_end: int) -> bytearray:
        """
        Copy the byte columns covering an inclusive pixel window.

        The result is what the controller expects after Set RAM X/Y:
        ``(x_end >> 3) - (x_start >> 3) + 1`` bytes per row, one row per
        line from ``y_start`` to ``y_end``.
        """
        b0 = x_start >> 3
        b1 = (x_end >> 3) + 1
        dst_stride = b1 - b0
        region = bytearray(dst_stride * (y_end - y_start + 1))
        src_stride = self._row_bytes
        for row, y in enumerate(range(y_start, y_end + 1)):
            src = y * src_stride
            dst = row * dst_stride
            region[dst:dst + dst_stride] = self._buffer[src + b0:src + b1]
        return region
