"""Pixelflut wire formats.

Every format encodes one "set pixel" command per pixel:

- ``plaintext``: ``PX <x> <y> <rrggbb>\\n``
- ``bin-flutties``: 8 bytes, ``0xB0 | canvas``, x and y as big-endian uint16, R, G, B
- ``bin-flurry``: 9 bytes, ``0x80``, canvas, x and y as little-endian uint16, R, G, B

Coordinates are offset before encoding and are not checked against the canvas
size. Binary formats keep the low 16 bits of each coordinate.
"""

import struct
from enum import Enum

import numpy as np

from vidflut.modules.video.errors import ConfigError
from vidflut.modules.video.raster import Pixel, PixelBatch

_FLUTTIES_DTYPE = np.dtype(
    [("cmd", "u1"), ("x", ">u2"), ("y", ">u2"), ("r", "u1"), ("g", "u1"), ("b", "u1")]
)
_FLURRY_DTYPE = np.dtype(
    [
        ("cmd", "u1"),
        ("canvas", "u1"),
        ("x", "<u2"),
        ("y", "<u2"),
        ("r", "u1"),
        ("g", "u1"),
        ("b", "u1"),
    ]
)


class WireProtocol(str, Enum):
    """Supported Pixelflut command encodings."""

    PLAINTEXT = "plaintext"
    BIN_FLUTTIES = "bin-flutties"
    BIN_FLURRY = "bin-flurry"

    @classmethod
    def parse(cls, value: str) -> "WireProtocol":
        """Look up a protocol by name.

        Raises:
            ConfigError: If the name is unknown.
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            names = ", ".join(p.value for p in cls)
            raise ConfigError(f"Unknown protocol '{value}' (expected one of {names})") from None


def encode(
    pixel: Pixel,
    offset: tuple[int, int] = (0, 0),
    canvas: int = 0,
    protocol: WireProtocol = WireProtocol.PLAINTEXT,
) -> bytes:
    """Encode a single pixel.

    Args:
        pixel: The pixel to set.
        offset: (x, y) added to the pixel position.
        canvas: Target canvas id, used by the binary formats.
        protocol: Wire format.

    Returns:
        One complete command.
    """
    x = pixel.x + offset[0]
    y = pixel.y + offset[1]
    r, g, b = pixel.color
    if protocol == WireProtocol.PLAINTEXT:
        return f"PX {x} {y} {r:02x}{g:02x}{b:02x}\n".encode("ascii")
    if protocol == WireProtocol.BIN_FLUTTIES:
        return struct.pack(">BHHBBB", 0xB0 | (canvas & 0x0F), x & 0xFFFF, y & 0xFFFF, r, g, b)
    return struct.pack("<BBHHBBB", 0x80, canvas & 0xFF, x & 0xFFFF, y & 0xFFFF, r, g, b)


def encode_batch(
    pixels: PixelBatch,
    offset: tuple[int, int] = (0, 0),
    canvas: int = 0,
    protocol: WireProtocol = WireProtocol.PLAINTEXT,
) -> bytes:
    """Encode many pixels into one buffer.

    Produces the same bytes as concatenating ``encode`` for each pixel.
    """
    if len(pixels) == 0:
        return b""

    xs = pixels.xs + offset[0]
    ys = pixels.ys + offset[1]
    if protocol == WireProtocol.PLAINTEXT:
        return "".join(
            f"PX {x} {y} {r:02x}{g:02x}{b:02x}\n"
            for x, y, (r, g, b) in zip(xs.tolist(), ys.tolist(), pixels.colors.tolist())
        ).encode("ascii")

    if protocol == WireProtocol.BIN_FLUTTIES:
        records = np.empty(len(pixels), dtype=_FLUTTIES_DTYPE)
        records["cmd"] = 0xB0 | (canvas & 0x0F)
    else:
        records = np.empty(len(pixels), dtype=_FLURRY_DTYPE)
        records["cmd"] = 0x80
        records["canvas"] = canvas & 0xFF
    records["x"] = xs & 0xFFFF
    records["y"] = ys & 0xFFFF
    records["r"] = pixels.colors[:, 0]
    records["g"] = pixels.colors[:, 1]
    records["b"] = pixels.colors[:, 2]
    return records.tobytes()
