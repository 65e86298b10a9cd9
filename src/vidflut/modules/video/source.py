"""Video sources.

This module extracts frames from a video file with ffmpeg into a directory of
PPM images and loads them back as rasters. An in-memory source is provided
for synthetic input.
"""

import logging
import re
import subprocess
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Sequence, Union

import cv2
import numpy as np
from yaml import safe_dump, safe_load

from vidflut.modules.video.errors import FrameLoadError, VideoSourceError
from vidflut.modules.video.raster import Raster

logger = logging.getLogger(__name__)

FRAME_PATTERN = "frame%d.ppm"
_FRAME_FILE_RE = re.compile(r"^frame(\d+)\.ppm$")


@dataclass(frozen=True)
class VideoMetadata:
    """Frame rate and length of an extracted video.

    Attributes:
        fps: Frames per second of the extracted frames.
        frame_count: Number of frames, numbered 1..frame_count.
    """

    fps: float
    frame_count: int

    def save(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            safe_dump(asdict(self), f)

    @classmethod
    def load(cls, path: Path) -> "VideoMetadata":
        """Read metadata written by ``save``.

        Raises:
            VideoSourceError: If the file is missing or malformed.
        """
        try:
            with open(path) as f:
                raw = safe_load(f)
            return cls(fps=float(raw["fps"]), frame_count=int(raw["frame_count"]))
        except (OSError, KeyError, TypeError, ValueError) as e:
            raise VideoSourceError(f"Invalid video metadata at {path}: {e!s}") from e


def probe_framerate(input_path: Path) -> float:
    """Get the frame rate of the first video stream with ffprobe.

    Raises:
        VideoSourceError: If ffprobe fails or prints an unexpected rate.
    """
    command = [
        "ffprobe",
        "-v",
        "0",
        "-of",
        "csv=p=0",
        "-select_streams",
        "v:0",
        "-show_entries",
        "stream=r_frame_rate",
        str(input_path),
    ]
    try:
        result = subprocess.run(command, capture_output=True, text=True, check=True)
    except FileNotFoundError as e:
        raise VideoSourceError("ffprobe not found in PATH") from e
    except subprocess.CalledProcessError as e:
        raise VideoSourceError(f"ffprobe failed on {input_path}: {e.stderr.strip()}") from e

    lines = result.stdout.strip().splitlines()
    if not lines:
        raise VideoSourceError("No output from ffprobe")
    rate = lines[0].strip()
    numerator, sep, denominator = rate.partition("/")
    try:
        fps = float(numerator) / float(denominator) if sep else float(numerator)
    except (ValueError, ZeroDivisionError):
        raise VideoSourceError(f"'{rate}' is not a valid framerate") from None
    if fps <= 0:
        raise VideoSourceError(f"'{rate}' is not a valid framerate")
    return fps


def count_frames(frames_dir: Path) -> int:
    """Count consecutive frame files starting at frame1.ppm."""
    indices = {
        int(match.group(1))
        for path in frames_dir.iterdir()
        if (match := _FRAME_FILE_RE.match(path.name))
    }
    count = 0
    while count + 1 in indices:
        count += 1
    return count


def extract_frames(
    input_path: Path, frames_dir: Path, fps: float, width: int = -1, height: int = -1
) -> VideoMetadata:
    """Rasterize a video to PPM frames with ffmpeg.

    Args:
        input_path: Video file.
        frames_dir: Output directory.
        fps: Frame rate to sample at.
        width: Output width, -1 to keep the source width.
        height: Output height, -1 to keep the source height.

    Returns:
        Metadata of the extracted frames.

    Raises:
        VideoSourceError: If ffmpeg fails or produces no frames.
    """
    frames_dir.mkdir(parents=True, exist_ok=True)
    logger.info(f"Extracting frames of {input_path} at {fps:.3f} fps ({width}x{height})")
    command = [
        "ffmpeg",
        "-v",
        "error",
        "-i",
        str(input_path),
        "-vf",
        f"fps={fps},scale={width}:{height}",
        str(frames_dir / FRAME_PATTERN),
    ]
    try:
        subprocess.run(command, capture_output=True, text=True, check=True)
    except FileNotFoundError as e:
        raise VideoSourceError("ffmpeg not found in PATH") from e
    except subprocess.CalledProcessError as e:
        raise VideoSourceError(f"ffmpeg failed on {input_path}: {e.stderr.strip()}") from e

    frame_count = count_frames(frames_dir)
    if frame_count == 0:
        raise VideoSourceError(f"ffmpeg produced no frames for {input_path}")
    logger.info(f"Extracted {frame_count} frames")
    return VideoMetadata(fps=fps, frame_count=frame_count)


@dataclass(frozen=True)
class FrameFile:
    """A frame stored as a PPM file."""

    index: int
    path: Path

    def load(self) -> Raster:
        """Read the frame as an RGB raster.

        Raises:
            FrameLoadError: If the file is missing or not a valid image.
        """
        if not self.path.is_file():
            raise FrameLoadError(self.index, f"{self.path} does not exist")
        image = cv2.imread(str(self.path), cv2.IMREAD_COLOR)
        if image is None:
            raise FrameLoadError(self.index, f"{self.path} is not a valid image")
        return Raster(cv2.cvtColor(image, cv2.COLOR_BGR2RGB))


class DirectoryFrameSource:
    """Frames extracted into a directory as frame1.ppm .. frameN.ppm."""

    def __init__(self, frames_dir: Path, metadata: VideoMetadata) -> None:
        self.frames_dir = frames_dir
        self.metadata = metadata

    @property
    def fps(self) -> float:
        return self.metadata.fps

    def frames(self) -> Sequence[FrameFile]:
        return [
            FrameFile(i, self.frames_dir / (FRAME_PATTERN % i))
            for i in range(1, self.metadata.frame_count + 1)
        ]


@dataclass(frozen=True)
class MemoryFrame:
    """A frame already held in memory."""

    index: int
    raster: Raster

    def load(self) -> Raster:
        return self.raster


class MemoryFrameSource:
    """Frames supplied as in-memory rasters or arrays."""

    def __init__(self, rasters: Sequence[Union[Raster, np.ndarray]], fps: float) -> None:
        self._frames = [
            MemoryFrame(i, r if isinstance(r, Raster) else Raster(r))
            for i, r in enumerate(rasters, start=1)
        ]
        self._fps = fps

    @property
    def fps(self) -> float:
        return self._fps

    def frames(self) -> Sequence[MemoryFrame]:
        return list(self._frames)
