"""
Bitmap Packer
=============
Turns an image into the exact bytes the SSD1680 BW RAM expects.

Input is either a Pillow image (any mode) or a grid of booleans where
``pixels[y][x]`` is truthy for a dark pixel. Output uses the PixelBuffer
layout: bit 1 = light, bit 0 = dark, MSB = leftmost pixel.

An image may be supplied in the panel's own orientation or transposed
(landscape onto the portrait-mounted panel); transposed images are rotated
90 degrees while packing.
"""
import logging
from typing import NamedTuple, Sequence

from ..errors import InvalidInputError
from .framebuffer import PixelBuffer, BLACK, WHITE, row_stride

logger = logging.getLogger(__name__)

# Midpoint of the 0-255 channel range; mean <= this is dark.
_DARK_THRESHOLD = 127.5

Grid = Sequence[Sequence[bool]]


class Window(NamedTuple):
    """Inclusive RAM window in panel coordinates."""
    x_start: int
    y_start: int
    x_end: int
    y_end: int

    @property
    def width(self) -> int:
        return self.x_end - self.x_start + 1

    @property
    def height(self) -> int:
        return self.y_end - self.y_start + 1

    @property
    def byte_width(self) -> int:
        """Byte columns the controller addresses for this window."""
        return (self.x_end >> 3) - (self.x_start >> 3) + 1

    @classmethod
    def for_image(
        cls, x: int, y: int, width: int, height: int,
        panel_width: int, panel_height: int,
    ) -> "Window":
        """
        Window covering a ``width`` x ``height`` image placed at (x, y).

        Raises:
            InvalidInputError: Empty image or window outside the panel
        """
        if width <= 0 or height <= 0:
            raise InvalidInputError(f"image must not be empty, got {width}x{height}")
        window = cls(x, y, x + width - 1, y + height - 1)
        if not (0 <= window.x_start and window.x_end < panel_width and
                0 <= window.y_start and window.y_end < panel_height):
            raise InvalidInputError(
                f"window {tuple(window)} exceeds panel {panel_width}x{panel_height}"
            )
        return window


def is_dark(r: int, g: int, b: int) -> bool:
    """Nearest-threshold classification of an 8-bit RGB sample."""
    return (r + g + b) / 3 <= _DARK_THRESHOLD


def pixels_from_image(image) -> tuple[list[list[bool]], int, int]:
    """
    Classify every pixel of ``image`` as dark or light.

    Args:
        image: Pillow ``Image`` or a grid of booleans (``grid[y][x]``)

    Returns:
        Tuple of (grid, width, height)

    Raises:
        InvalidInputError: Empty or ragged grid
    """
    if hasattr(image, "convert") and hasattr(image, "size"):
        rgb = image.convert("RGB")
        width, height = rgb.size
        px = rgb.load()
        grid = [[is_dark(*px[x, y]) for x in range(width)] for y in range(height)]
        return grid, width, height

    grid = [[bool(v) for v in row] for row in image]
    height = len(grid)
    width = len(grid[0]) if height else 0
    if width == 0:
        raise InvalidInputError("image must not be empty")
    for y, row in enumerate(grid):
        if len(row) != width:
            raise InvalidInputError(
                f"row {y} has {len(row)} pixels, expected {width}"
            )
    return grid, width, height


def check_orientation(
    width: int, height: int, panel_width: int, panel_height: int,
) -> bool:
    """
    Decide whether an image needs rotating onto the panel.

    Returns:
        True if the image is the panel's transpose, False if it matches

    Raises:
        InvalidInputError: Any other size
    """
    if (width, height) == (panel_width, panel_height):
        return False
    if (width, height) == (panel_height, panel_width):
        return True
    raise InvalidInputError(
        f"invalid image dimensions {width}x{height}: must be "
        f"{panel_width}x{panel_height} or {panel_height}x{panel_width}"
    )


def pack(
    pixels: Grid,
    width: int,
    height: int,
    panel_width: int,
    panel_height: int,
) -> bytearray:
    """
    Pack a full-panel image into a RAM buffer.

    Buffer length is ``ceil(panel_width / 8) * panel_height``. A transposed
    image is rotated so source (x, y) lands on panel
    (y, panel_height - 1 - x).

    Raises:
        InvalidInputError: Image is neither panel-sized nor transposed
    """
    rotate = check_orientation(width, height, panel_width, panel_height)
    buf = PixelBuffer(panel_width, panel_height, WHITE)

    for y in range(height):
        row = pixels[y]
        for x in range(width):
            if not row[x]:
                continue
            if rotate:
                px, py = y, panel_height - 1 - x
            else:
                px, py = x, y
            if px < panel_width and py < panel_height:
                buf.set_pixel(px, py, BLACK)

    logger.debug(
        "Packed %dx%d image%s into %d bytes",
        width, height, " (rotated)" if rotate else "", len(buf),
    )
    return buf.buffer


def pack_window(pixels: Grid, window: Window) -> bytearray:
    """
    Pack a sub-image for the RAM window it will be written to.

    Rows are ``window.byte_width`` bytes wide because the controller
    addresses X in whole bytes. Bits inside those bytes that the image
    does not cover are left light.
    """
    x_base = window.x_start & ~7
    buf = PixelBuffer(window.byte_width * 8, window.height, WHITE)

    for row in range(window.height):
        line = pixels[row]
        for col in range(window.width):
            if line[col]:
                buf.set_pixel(window.x_start - x_base + col, row, BLACK)
    return buf.buffer


def unpack(buffer: bytes, panel_width: int, panel_height: int) -> list[list[bool]]:
    """
    Read a RAM buffer back into a dark/light grid (``grid[y][x]``).

    Raises:
        InvalidInputError: Buffer length does not match the panel
    """
    stride = row_stride(panel_width)
    if len(buffer) != stride * panel_height:
        raise InvalidInputError(
            f"buffer must be {stride * panel_height} bytes, got {len(buffer)}"
        )
    grid = []
    for y in range(panel_height):
        base = y * stride
        grid.append([
            not (buffer[base + (x >> 3)] & (0x80 >> (x & 7)))
            for x in range(panel_width)
        ])
    return grid
