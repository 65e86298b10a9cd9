"""Temporal delta codecs.

This module provides the two interchangeable delta compression strategies.
Both diff each new frame against the codec's own reconstruction, i.e. the
result of replaying every update it has emitted so far, so that the sender
always compares against what the receiver is assumed to show.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

import numpy as np

from vidflut.modules.video.color import lab_planes, yuv_planes
from vidflut.modules.video.errors import ConfigError
from vidflut.modules.video.protocols import DeltaCodec
from vidflut.modules.video.raster import (
    EMPTY,
    Color,
    DeltaUpdate,
    FrameUpdate,
    PixelBatch,
    Raster,
)

logger = logging.getLogger(__name__)

DEBUG_COLOR = Color(128, 128, 128)

# Squared CIELAB distance at or below which a change is treated as dithering noise
NOISE_FLOOR = 2

# A numeric compression level counts in units of 1024 pixels per second
PIXELS_PER_LEVEL_UNIT = 1024


class Algorithm(str, Enum):
    """Available delta compression strategies."""

    THRESHOLD = "threshold"
    BUDGET = "budget"


class Preset(str, Enum):
    """Named compression levels."""

    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EXTREME = "extreme"


@dataclass(frozen=True)
class ThresholdParams:
    """Per-level thresholds of the threshold-gated codec.

    The chroma threshold for a pixel of luma ``Y`` is
    ``chroma_scale * (1 - brightness_weight * (Y / 255) ** brightness_power)``,
    so brighter pixels get a stricter chroma tolerance.
    """

    luma_threshold: int
    chroma_scale: float
    brightness_weight: float = 0.0
    brightness_power: int = 1

    def chroma_thresholds(self, luma: np.ndarray[Any, Any]) -> np.ndarray[Any, Any]:
        y = luma.astype(np.float32) / 255.0
        curve = 1.0 - self.brightness_weight * np.power(y, self.brightness_power)
        return (self.chroma_scale * curve).astype(np.int16)


THRESHOLD_PRESETS: dict[Preset, ThresholdParams] = {
    Preset.NONE: ThresholdParams(luma_threshold=0, chroma_scale=0.0),
    Preset.LOW: ThresholdParams(luma_threshold=3, chroma_scale=8.0, brightness_weight=1.0),
    Preset.MEDIUM: ThresholdParams(
        luma_threshold=7, chroma_scale=16.0, brightness_weight=0.85, brightness_power=2
    ),
    Preset.HIGH: ThresholdParams(
        luma_threshold=15, chroma_scale=32.0, brightness_weight=0.75, brightness_power=2
    ),
    Preset.EXTREME: ThresholdParams(luma_threshold=32, chroma_scale=64.0),
}

# Pixels per frame for the budget-ranked codec; None means unlimited
BUDGET_PRESETS: dict[Preset, Optional[int]] = {
    Preset.NONE: None,
    Preset.LOW: 20000,
    Preset.MEDIUM: 8000,
    Preset.HIGH: 3000,
    Preset.EXTREME: 1000,
}

_PRESET_ALIASES = {"trash-compactor": Preset.EXTREME}


@dataclass(frozen=True)
class CompressionLevel:
    """A named preset or a numeric pixels-per-second budget.

    Attributes:
        preset: Named level, if given by name.
        units: Numeric level in units of 1024 pixels per second.
    """

    preset: Optional[Preset] = None
    units: Optional[int] = None

    @classmethod
    def parse(cls, value: str) -> "CompressionLevel":
        """Parse a level given on the command line.

        Args:
            value: A preset name (``none``, ``low``, ``medium``, ``high``,
                ``extreme``) or a positive integer.

        Raises:
            ConfigError: If the value is neither.
        """
        text = value.strip().lower()
        if text.isdigit():
            units = int(text)
            if units <= 0:
                raise ConfigError("Numeric compression level must be greater than 0")
            return cls(units=units)
        if text in _PRESET_ALIASES:
            return cls(preset=_PRESET_ALIASES[text])
        try:
            return cls(preset=Preset(text))
        except ValueError:
            names = ", ".join(p.value for p in Preset)
            raise ConfigError(
                f"Invalid compression level '{value}' (expected one of {names} or a number)"
            ) from None

    def threshold_params(self) -> ThresholdParams:
        """Get the threshold table row for this level.

        Raises:
            ConfigError: If the level is numeric.
        """
        if self.preset is None:
            raise ConfigError("The threshold algorithm only accepts named compression levels")
        return THRESHOLD_PRESETS[self.preset]

    def target_pixels_per_frame(self, fps: float) -> Optional[int]:
        """Get the per-frame pixel budget.

        Args:
            fps: Frame rate of the stream, used to split a per-second budget.

        Returns:
            The budget, or None for an unlimited budget.
        """
        if self.preset is not None:
            return BUDGET_PRESETS[self.preset]
        assert self.units is not None
        if fps <= 0:
            raise ConfigError("fps must be greater than 0")
        return max(1, math.floor(self.units * PIXELS_PER_LEVEL_UNIT / fps))

    def __str__(self) -> str:
        return self.preset.value if self.preset is not None else str(self.units)


class _ReconstructingCodec:
    """Shared state handling of the delta codecs.

    Subclasses implement ``delta`` and get first-frame handling, reconstruction
    tracking and the debug view for free.
    """

    def __init__(self, debug: bool = False) -> None:
        self.debug = debug
        self._reconstruction: Optional[Raster] = None

    @property
    def reconstruction(self) -> Optional[Raster]:
        """The raster the receiver is assumed to hold."""
        return self._reconstruction

    def delta(self, old: Raster, new: Raster) -> FrameUpdate:
        raise NotImplementedError

    def compress(self, raster: Raster) -> FrameUpdate:
        """Compress the next frame of the stream.

        Args:
            raster: The next source frame.

        Returns:
            Full for the first frame (or a change of dimensions), otherwise an
            Empty or Delta update against the current reconstruction.
        """
        previous = self._reconstruction
        if previous is None or previous.shape != raster.shape:
            self._reconstruction = raster
            return raster.snapshot()

        update = self.delta(previous, raster)
        self._reconstruction = previous.apply(update)

        if self.debug:
            canvas = Raster.filled(raster.width, raster.height, DEBUG_COLOR)
            return canvas.apply(update).snapshot()
        return update


def _delta_from_indices(indices: np.ndarray[Any, Any], new: Raster) -> FrameUpdate:
    if indices.size == 0:
        return EMPTY
    ys, xs = np.divmod(indices.astype(np.intp), new.width)
    colors = new.data.reshape(-1, 3)[indices]
    return DeltaUpdate(PixelBatch(xs, ys, colors))


class ThresholdCodec(_ReconstructingCodec):
    """Threshold-gated codec.

    A pixel is retransmitted when its luma difference or its summed chroma
    difference exceeds the level's thresholds.
    """

    def __init__(self, params: ThresholdParams, debug: bool = False) -> None:
        super().__init__(debug=debug)
        self.params = params

    def delta(self, old: Raster, new: Raster) -> FrameUpdate:
        old_yuv = yuv_planes(old.data).astype(np.int16)
        new_yuv = yuv_planes(new.data).astype(np.int16)
        diff = np.abs(old_yuv - new_yuv)

        luma_diff = diff[:, :, 0]
        chroma_diff = diff[:, :, 1] + diff[:, :, 2]
        changed = (luma_diff > self.params.luma_threshold) | (
            chroma_diff > self.params.chroma_thresholds(old_yuv[:, :, 0])
        )
        return _delta_from_indices(np.flatnonzero(changed), new)


class BudgetCodec(_ReconstructingCodec):
    """Budget-ranked codec.

    Ranks changed pixels by squared CIELAB distance and keeps the
    ``target_pixels_per_frame`` largest. Ties keep row-major scan order.
    """

    def __init__(self, target_pixels_per_frame: Optional[int], debug: bool = False) -> None:
        super().__init__(debug=debug)
        if target_pixels_per_frame is not None and target_pixels_per_frame <= 0:
            raise ConfigError("target_pixels_per_frame must be greater than 0")
        self.target_pixels_per_frame = target_pixels_per_frame

    def distances(self, old: Raster, new: Raster) -> np.ndarray[Any, Any]:
        """Squared perceptual distance per pixel, flattened in scan order."""
        old_lab = lab_planes(old.data).astype(np.int32)
        new_lab = lab_planes(new.data).astype(np.int32)
        return np.square(old_lab - new_lab).sum(axis=2).ravel()

    def delta(self, old: Raster, new: Raster) -> FrameUpdate:
        dist = self.distances(old, new)
        candidates = np.flatnonzero(dist > NOISE_FLOOR)
        if candidates.size == 0:
            return EMPTY

        # stable sort keeps ascending scan index among equal distances
        order = np.argsort(-dist[candidates], kind="stable")
        chosen = candidates[order[: self.target_pixels_per_frame]]
        return _delta_from_indices(chosen, new)


def create_codec(
    algorithm: Algorithm, level: CompressionLevel, fps: float, debug: bool = False
) -> DeltaCodec:
    """Create a fresh codec instance.

    Args:
        algorithm: Strategy to use.
        level: Compression level.
        fps: Stream frame rate, used to derive per-frame budgets.
        debug: Whether to emit the debug view instead of the real updates.

    Raises:
        ConfigError: If the level is not valid for the algorithm.
    """
    if algorithm == Algorithm.THRESHOLD:
        return ThresholdCodec(level.threshold_params(), debug=debug)
    return BudgetCodec(level.target_pixels_per_frame(fps), debug=debug)


def codec_factory(
    algorithm: Algorithm, level: CompressionLevel, fps: float, debug: bool = False
) -> Callable[[], DeltaCodec]:
    """Validate the codec settings once and return a factory for fresh instances."""
    create_codec(algorithm, level, fps, debug)
    logger.debug(f"Codec factory ready: algorithm={algorithm.value}, level={level}, fps={fps}")
    return lambda: create_codec(algorithm, level, fps, debug)
