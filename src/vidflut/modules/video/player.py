"""Frame-paced playback onto a canvas.

This module provides the VideoPlayer, which drives the FrameTimer and the
FrameSender either over precompressed updates (ahead of time) or by
compressing each frame right before sending it (just in time).
"""

import logging
import threading
import time
from typing import Callable, Optional, Sequence

from vidflut.modules.video.protocols import DeltaCodec, FrameLoader
from vidflut.modules.video.raster import FrameUpdate
from vidflut.modules.video.scheduler import FrameTimer
from vidflut.modules.video.sender import FrameSender

logger = logging.getLogger(__name__)

STATS_INTERVAL = 10.0


class VideoPlayer:
    """Plays frame updates at a target frame rate.

    Attributes:
        sender: Writes each frame's pixels to the canvas.
        fps: Target frames per second.
        loop: Whether to restart from the first frame after the last one.
        timer: Frame pacer.
        frames_played: Number of frames sent so far.
    """

    def __init__(
        self,
        sender: FrameSender,
        fps: float,
        loop: bool = True,
        timer: Optional[FrameTimer] = None,
    ) -> None:
        self.sender = sender
        self.fps = fps
        self.loop = loop
        self.timer = timer or FrameTimer(fps)
        self.frames_played = 0
        self._stop_event = threading.Event()
        self._stats_frames = 0
        self._stats_pixels = 0
        self._stats_since = time.monotonic()

        logger.debug(f"Initialized VideoPlayer with fps={fps}, loop={loop}")

    def stop(self) -> None:
        """Ask the playback loop to stop after the current frame."""
        self._stop_event.set()

    def _send(self, update: FrameUpdate) -> None:
        pixels = self.sender.send(update)

        self.frames_played += 1
        self._stats_frames += 1
        self._stats_pixels += pixels
        elapsed = time.monotonic() - self._stats_since
        if elapsed >= STATS_INTERVAL:
            logger.info(
                f"Playing at {self._stats_frames / elapsed:.1f} FPS, "
                f"{self._stats_pixels / elapsed:.0f} px/s, lag: {self.timer.lag * 1000:.1f} ms"
            )
            self._stats_frames = 0
            self._stats_pixels = 0
            self._stats_since = time.monotonic()

    def play_ahead_of_time(self, updates: Sequence[FrameUpdate]) -> None:
        """Play precompressed updates.

        Raises:
            SendError: If writing to the canvas fails.
        """
        if not updates:
            logger.warning("Nothing to play")
            return
        logger.info(f"Playing {len(updates)} precompressed frames at {self.fps:.2f} FPS")
        self._stop_event.clear()
        while not self._stop_event.is_set():
            for update in updates:
                if self._stop_event.is_set():
                    break
                self.timer.start()
                self._send(update)
                self.timer.wait()
            if not self.loop:
                break
        logger.info("Playback stopped")

    def play_just_in_time(
        self, loaders: Sequence[FrameLoader], codec_factory: Callable[[], DeltaCodec]
    ) -> None:
        """Load, compress and send each frame inside its frame slot.

        One codec is used for the whole run, so its reconstruction carries
        over when the video loops.

        Raises:
            FrameLoadError: If a frame cannot be loaded.
            SendError: If writing to the canvas fails.
        """
        if not loaders:
            logger.warning("Nothing to play")
            return
        logger.info(f"Playing {len(loaders)} frames just in time at {self.fps:.2f} FPS")
        codec = codec_factory()
        self._stop_event.clear()
        while not self._stop_event.is_set():
            for loader in loaders:
                if self._stop_event.is_set():
                    break
                self.timer.start()
                self._send(codec.compress(loader.load()))
                self.timer.wait()
            if not self.loop:
                break
        logger.info("Playback stopped")
