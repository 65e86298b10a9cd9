"""Frame data model.

This module provides the Raster class holding one decoded video frame and the
FrameUpdate variants describing how a frame differs from its predecessor.
"""

from dataclasses import dataclass, field
from typing import Any, Iterator, NamedTuple, Union

import numpy as np

PixelData = np.ndarray[Any, np.dtype[np.uint8]]
IndexArray = np.ndarray[Any, np.dtype[np.intp]]


class Color(NamedTuple):
    """An RGB colour with 8-bit channels."""

    r: int
    g: int
    b: int


class Pixel(NamedTuple):
    """A colour at an (x, y) position of a raster."""

    x: int
    y: int
    color: Color


def _frozen(array: np.ndarray[Any, Any]) -> np.ndarray[Any, Any]:
    array.flags.writeable = False
    return array


@dataclass(frozen=True, eq=False)
class PixelBatch:
    """Column-oriented list of pixels.

    Attributes:
        xs: X coordinates.
        ys: Y coordinates.
        colors: RGB values, one row per pixel.
    """

    xs: IndexArray
    ys: IndexArray
    colors: PixelData

    def __post_init__(self) -> None:
        if not (len(self.xs) == len(self.ys) == len(self.colors)):
            raise ValueError("xs, ys and colors must have the same length")

    def __len__(self) -> int:
        return len(self.xs)

    def __iter__(self) -> Iterator[Pixel]:
        for x, y, (r, g, b) in zip(self.xs.tolist(), self.ys.tolist(), self.colors.tolist()):
            yield Pixel(x, y, Color(r, g, b))

    def __getitem__(self, index: slice) -> "PixelBatch":
        return PixelBatch(self.xs[index], self.ys[index], self.colors[index])

    @classmethod
    def empty(cls) -> "PixelBatch":
        return cls(
            np.empty(0, dtype=np.intp),
            np.empty(0, dtype=np.intp),
            np.empty((0, 3), dtype=np.uint8),
        )

    @classmethod
    def from_pixels(cls, pixels: list[Pixel]) -> "PixelBatch":
        """Build a batch from a list of Pixel tuples."""
        if not pixels:
            return cls.empty()
        return cls(
            np.array([p.x for p in pixels], dtype=np.intp),
            np.array([p.y for p in pixels], dtype=np.intp),
            np.array([p.color for p in pixels], dtype=np.uint8),
        )


@dataclass(frozen=True)
class EmptyUpdate:
    """The frame is identical to its predecessor under the codec's threshold."""

    def to_pixels(self) -> PixelBatch:
        return PixelBatch.empty()


@dataclass(frozen=True, eq=False)
class DeltaUpdate:
    """A sparse list of changed pixels, in the order the codec selected them."""

    pixels: PixelBatch

    def __post_init__(self) -> None:
        if len(self.pixels) == 0:
            raise ValueError("A delta update must contain at least one pixel")

    def __len__(self) -> int:
        return len(self.pixels)

    def to_pixels(self) -> PixelBatch:
        return self.pixels


@dataclass(frozen=True, eq=False)
class FullUpdate:
    """A complete raster that replaces the receiver's canvas."""

    data: PixelData = field(repr=False)

    def __post_init__(self) -> None:
        if self.data.ndim != 3 or self.data.shape[2] != 3:
            raise ValueError(f"Full update data must have shape (h, w, 3), got {self.data.shape}")

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    def to_pixels(self) -> PixelBatch:
        ys, xs = np.indices((self.height, self.width), dtype=np.intp)
        return PixelBatch(xs.ravel(), ys.ravel(), self.data.reshape(-1, 3))


FrameUpdate = Union[EmptyUpdate, DeltaUpdate, FullUpdate]

EMPTY = EmptyUpdate()


class Raster:
    """An immutable width x height grid of RGB colours.

    Attributes:
        data: uint8 array of shape (height, width, 3), read-only.
    """

    def __init__(self, data: PixelData) -> None:
        """Initialize a Raster.

        Args:
            data: Array of shape (height, width, 3). It is copied and frozen.

        Raises:
            ValueError: If the array does not hold RGB pixels.
        """
        array = np.array(data, dtype=np.uint8, copy=True)
        if array.ndim != 3 or array.shape[2] != 3:
            raise ValueError(f"Raster data must have shape (h, w, 3), got {array.shape}")
        self.data: PixelData = _frozen(array)

    @classmethod
    def filled(cls, width: int, height: int, color: Color) -> "Raster":
        """Create a raster of a single colour."""
        data = np.empty((height, width, 3), dtype=np.uint8)
        data[:, :] = color
        return cls(data)

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    @property
    def shape(self) -> tuple[int, int]:
        """(width, height) of the raster."""
        return self.width, self.height

    def pixel(self, x: int, y: int) -> Color:
        r, g, b = self.data[y, x].tolist()
        return Color(r, g, b)

    def snapshot(self) -> FullUpdate:
        """Return the whole raster as a Full update."""
        return FullUpdate(self.data)

    def apply(self, update: FrameUpdate) -> "Raster":
        """Return a new raster with the update applied.

        Args:
            update: Empty keeps every pixel, Full replaces all data, Delta
                overwrites only the listed positions.

        Raises:
            IndexError: If a delta pixel lies outside the raster.
        """
        if isinstance(update, EmptyUpdate):
            return self
        if isinstance(update, FullUpdate):
            return Raster(update.data)

        pixels = update.pixels
        if (
            pixels.xs.min() < 0
            or pixels.ys.min() < 0
            or pixels.xs.max() >= self.width
            or pixels.ys.max() >= self.height
        ):
            raise IndexError(
                f"Delta update addresses pixels outside the {self.width}x{self.height} raster"
            )
        data = self.data.copy()
        data[pixels.ys, pixels.xs] = pixels.colors
        return Raster(data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Raster):
            return NotImplemented
        return self.data.shape == other.data.shape and bool(np.array_equal(self.data, other.data))

    def __hash__(self) -> int:
        return hash((self.data.shape, self.data.tobytes()))

    def __repr__(self) -> str:
        return f"Raster(width={self.width}, height={self.height})"
