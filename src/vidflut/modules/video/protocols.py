"""Protocol definitions for the video streaming components.

This module provides the structural interfaces used between the codecs,
the compression pipeline, the frame sources and the network sender.
"""

from typing import Protocol, Sequence

from vidflut.modules.video.raster import FrameUpdate, Raster


class DeltaCodec(Protocol):
    """Protocol defining the interface of a stateful delta codec.

    One instance compresses one stream of frames, strictly in order.
    """

    def compress(self, raster: Raster) -> FrameUpdate:
        """Compress the next frame relative to the codec's reconstruction.

        Args:
            raster: The next source frame.

        Returns:
            The update to transmit for this frame.
        """
        ...


class FrameLoader(Protocol):
    """Protocol defining a lazily loadable frame."""

    @property
    def index(self) -> int:
        """Get the 1-based frame index."""
        ...

    def load(self) -> Raster:
        """Load the frame.

        Raises:
            FrameLoadError: If the frame cannot be read.
        """
        ...


class FrameSource(Protocol):
    """Protocol defining a decoded video available frame by frame."""

    @property
    def fps(self) -> float:
        """Get the frame rate of the decoded frames."""
        ...

    def frames(self) -> Sequence[FrameLoader]:
        """Get the loaders of all frames, in order."""
        ...


class Connection(Protocol):
    """Protocol defining a writable byte stream to the canvas server."""

    def write(self, data: bytes) -> None:
        """Write all bytes."""
        ...

    def flush(self) -> None:
        """Flush buffered bytes to the server."""
        ...
