"""PNG to ESC/POS raster bit-image conversion."""
from __future__ import annotations

import io
import logging
from typing import Sequence

from PIL import Image, UnidentifiedImageError

from common.errors import InputError
from printer.commands import RASTER_MODE_NORMAL, raster_header

LOGGER = logging.getLogger(__name__)

# Mean of R, G and B below this prints as a dot.
INK_THRESHOLD = 128


def _decode_png(png_bytes: bytes) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(png_bytes))
        image.load()
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise InputError("Invalid PNG image data") from exc
    if image.format != "PNG":
        raise InputError(f"Expected a PNG image, got {image.format or 'unknown format'}")
    if image.width == 0 or image.height == 0:
        raise InputError("Image has invalid dimensions")
    return image


def to_monochrome(image: Image.Image) -> list[int]:
    """Return one 0/1 value per pixel in row-major order (1 means ink)."""
    data = image.convert("RGBA").tobytes()
    return [
        1 if (data[i] + data[i + 1] + data[i + 2]) / 3 < INK_THRESHOLD else 0
        for i in range(0, len(data), 4)
    ]


def pack_rows(pixels: Sequence[int], width: int, height: int) -> bytes:
    """Pack pixels 8 per byte, most significant bit first.

    Rows are padded on the right up to a whole number of bytes.
    """
    width_bytes = (width + 7) // 8
    packed = bytearray(width_bytes * height)
    for y in range(height):
        row_offset = y * width
        out_offset = y * width_bytes
        for x in range(width):
            if pixels[row_offset + x]:
                packed[out_offset + x // 8] |= 0x80 >> (x % 8)
    return bytes(packed)


def rasterize_png(png_bytes: bytes, mode: int = RASTER_MODE_NORMAL) -> bytes:
    """Convert PNG bytes into a complete ``GS v 0`` raster command."""
    image = _decode_png(png_bytes)
    width, height = image.size
    pixels = to_monochrome(image)
    width_bytes = (width + 7) // 8
    LOGGER.debug("Rasterizing %dx%d image (%d bytes per row)", width, height, width_bytes)
    return raster_header(width_bytes, height, mode) + pack_rows(pixels, width, height)


__all__ = ["INK_THRESHOLD", "pack_rows", "rasterize_png", "to_monochrome"]
