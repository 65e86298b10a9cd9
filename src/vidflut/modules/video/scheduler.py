"""Frame pacing.

This module provides the FrameTimer used to play frames at a target rate.
Each frame calls ``start()`` before its work and ``wait()`` after it.
"""

import logging
import time
from typing import Callable, Optional

from vidflut.modules.video.errors import ConfigError

logger = logging.getLogger(__name__)


class FrameTimer:
    """Deadline-based frame pacer with lag compensation.

    A frame whose work overruns its interval adds the overrun to ``lag``; the
    next frames shorten their sleep to pay it back. Frames are never dropped,
    so a stream that is always too slow falls behind real time.

    Attributes:
        interval: Target seconds per frame.
        lag: Accumulated scheduling debt in seconds.
    """

    def __init__(
        self,
        fps: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize a FrameTimer.

        Args:
            fps: Target frames per second.
            clock: Monotonic clock in seconds.
            sleep: Function sleeping for a number of seconds.

        Raises:
            ConfigError: If fps is not positive.
        """
        if fps <= 0:
            raise ConfigError("fps must be greater than 0")
        self.interval = 1.0 / fps
        self.lag = 0.0
        self._clock = clock
        self._sleep = sleep
        self._started_at = 0.0
        self._planned = 0.0
        self._deadline: Optional[float] = None

    @property
    def planned_sleep(self) -> float:
        """Duration the current frame was allowed to take."""
        return self._planned

    def start(self) -> None:
        """Arm the deadline for the next frame, borrowing against the lag."""
        borrowed = min(self.lag, self.interval)
        self.lag -= borrowed
        self._planned = self.interval - borrowed
        self._started_at = self._clock()
        self._deadline = self._started_at + self._planned

    def wait(self) -> None:
        """Block until the deadline, then record any overrun as lag.

        Raises:
            RuntimeError: If called before ``start()``.
        """
        if self._deadline is None:
            raise RuntimeError("wait() called before start()")

        remaining = self._deadline - self._clock()
        if remaining > 0:
            self._sleep(remaining)
        self._deadline = None

        elapsed = self._clock() - self._started_at
        overrun = elapsed - self._planned
        if overrun > 0:
            self.lag += overrun
            logger.debug(
                f"Frame overran its slot by {overrun * 1000:.1f} ms, "
                f"lag: {self.lag * 1000:.1f} ms"
            )
