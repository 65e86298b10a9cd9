"""Exceptions raised by the video streaming modules."""

from typing import Optional


class VidflutError(Exception):
    """Base class for all errors raised by vidflut."""

    pass


class ConfigError(VidflutError):
    """Exception raised for invalid configuration or arguments."""

    pass


class VideoSourceError(VidflutError):
    """Exception raised when ffmpeg or ffprobe cannot produce frames."""

    pass


class FrameLoadError(VidflutError):
    """Exception raised when a frame file cannot be read or parsed.

    Attributes:
        index: 1-based index of the frame that failed to load.
    """

    def __init__(self, index: int, message: str) -> None:
        super().__init__(f"Failed to load frame {index}: {message}")
        self.index = index


class PipelineError(VidflutError):
    """First failure reported by a compression worker.

    Attributes:
        frame_index: Index of the frame being processed when the worker failed,
            or None if unknown.
        cause: The original exception.
    """

    def __init__(
        self, frame_index: Optional[int], cause: Optional[BaseException] = None
    ) -> None:
        location = f" at frame {frame_index}" if frame_index is not None else ""
        detail = f": {cause!s}" if cause is not None else ""
        super().__init__(f"Compression failed{location}{detail}")
        self.frame_index = frame_index
        self.cause = cause


class SendError(VidflutError):
    """Exception raised when writing to the canvas connection fails."""

    pass
