"""Perceptual colour spaces used as distance metrics by the delta codecs."""

from typing import Any

import cv2
import numpy as np

from vidflut.modules.video.raster import Color

ColorArray = np.ndarray[Any, np.dtype[np.uint8]]


def yuv_planes(rgb: ColorArray) -> ColorArray:
    """Convert an RGB image of shape (height, width, 3) to 8-bit YUV (BT.601).

    Args:
        rgb: RGB image data.

    Returns:
        Array of the same shape holding Y, U and V; U and V are centred on 128.
    """
    return cv2.cvtColor(np.ascontiguousarray(rgb), cv2.COLOR_RGB2YUV)


def lab_planes(rgb: ColorArray) -> ColorArray:
    """Convert an RGB image of shape (height, width, 3) to 8-bit CIELAB.

    OpenCV scales L to 0-255 and offsets a and b by 128.
    """
    return cv2.cvtColor(np.ascontiguousarray(rgb), cv2.COLOR_RGB2LAB)


def to_yuv(color: Color) -> tuple[int, int, int]:
    """Convert a single colour to YUV."""
    y, u, v = yuv_planes(np.array([[color]], dtype=np.uint8))[0, 0]
    return int(y), int(u), int(v)


def to_lab(color: Color) -> tuple[int, int, int]:
    """Convert a single colour to 8-bit CIELAB."""
    lum, a, b = lab_planes(np.array([[color]], dtype=np.uint8))[0, 0]
    return int(lum), int(a), int(b)
