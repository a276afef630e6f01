"""ESC/POS command bytes and an append-only command buffer."""
from __future__ import annotations

import re

ESC = b"\x1b"
GS = b"\x1d"
NEWLINE = b"\n"

INIT = ESC + b"@"

ALIGN_LEFT = ESC + b"a\x00"
ALIGN_CENTER = ESC + b"a\x01"
ALIGN_RIGHT = ESC + b"a\x02"

BOLD_ON = ESC + b"E\x01"
BOLD_OFF = ESC + b"E\x00"

# GS ! n: high nibble is width multiplier, low nibble height multiplier
SIZE_NORMAL = GS + b"!\x00"
SIZE_DOUBLE = GS + b"!\x11"
SIZE_DOUBLE_HEIGHT = GS + b"!\x01"
SIZE_DOUBLE_WIDTH = GS + b"!\x10"

CUT = GS + b"V\x00"

RASTER_IMAGE = GS + b"v0"
RASTER_MODE_NORMAL = 0

# C0 controls and DEL, except newline; caller text must not carry commands.
_CONTROL_CHARS = re.compile(r"[\x00-\x09\x0b-\x1f\x7f]")


def feed(lines: int = 1) -> bytes:
    """ESC d n: print the buffer and feed ``lines`` lines."""
    if not 0 <= lines <= 255:
        raise ValueError("Feed lines must be between 0 and 255")
    return ESC + b"d" + bytes([lines])


def raster_header(width_bytes: int, height: int, mode: int = RASTER_MODE_NORMAL) -> bytes:
    """GS v 0 m xL xH yL yH, dimensions as little-endian 16-bit values."""
    if not 0 <= width_bytes <= 0xFFFF or not 0 <= height <= 0xFFFF:
        raise ValueError("Raster dimensions must fit in two bytes")
    return (
        RASTER_IMAGE
        + bytes([mode])
        + width_bytes.to_bytes(2, "little")
        + height.to_bytes(2, "little")
    )


class CommandBuffer:
    """Accumulates printer commands and encoded text in order.

    Once :meth:`getvalue` has been called the buffer is frozen and any
    further append raises ``RuntimeError``.
    """

    def __init__(self, encoding: str = "latin-1") -> None:
        self.encoding = encoding
        self._data = bytearray()
        self._frozen = False

    def _append(self, chunk: bytes) -> "CommandBuffer":
        if self._frozen:
            raise RuntimeError("Command buffer already handed off")
        self._data.extend(chunk)
        return self

    def command(self, *chunks: bytes) -> "CommandBuffer":
        for chunk in chunks:
            self._append(chunk)
        return self

    def raw(self, data: bytes) -> "CommandBuffer":
        return self._append(bytes(data))

    def text(self, value: str) -> "CommandBuffer":
        clean = _CONTROL_CHARS.sub("", value)
        return self._append(clean.encode(self.encoding, errors="replace"))

    def line(self, value: str = "") -> "CommandBuffer":
        self.text(value)
        return self._append(NEWLINE)

    def __len__(self) -> int:
        return len(self._data)

    def getvalue(self) -> bytes:
        self._frozen = True
        return bytes(self._data)


__all__ = [
    "INIT",
    "ALIGN_LEFT",
    "ALIGN_CENTER",
    "ALIGN_RIGHT",
    "BOLD_ON",
    "BOLD_OFF",
    "SIZE_NORMAL",
    "SIZE_DOUBLE",
    "SIZE_DOUBLE_HEIGHT",
    "SIZE_DOUBLE_WIDTH",
    "CUT",
    "NEWLINE",
    "feed",
    "raster_header",
    "CommandBuffer",
]
