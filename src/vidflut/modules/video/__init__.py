"""Video module for streaming videos onto Pixelflut canvases.

This module provides the frame model, the delta codecs, the compression
pipeline and the paced network playback.
"""

from vidflut.modules.video.codec import (
    Algorithm,
    BudgetCodec,
    CompressionLevel,
    ThresholdCodec,
    create_codec,
)
from vidflut.modules.video.errors import (
    ConfigError,
    FrameLoadError,
    PipelineError,
    SendError,
    VideoSourceError,
    VidflutError,
)
from vidflut.modules.video.pipeline import CompressionPipeline
from vidflut.modules.video.player import VideoPlayer
from vidflut.modules.video.raster import Color, Pixel, Raster
from vidflut.modules.video.sender import FrameSender, TcpConnection
from vidflut.modules.video.wire import WireProtocol

__all__ = [
    "Algorithm",
    "BudgetCodec",
    "Color",
    "CompressionLevel",
    "CompressionPipeline",
    "ConfigError",
    "FrameLoadError",
    "FrameSender",
    "Pixel",
    "PipelineError",
    "Raster",
    "SendError",
    "TcpConnection",
    "ThresholdCodec",
    "VideoPlayer",
    "VideoSourceError",
    "VidflutError",
    "WireProtocol",
    "create_codec",
]
