"""Ahead-of-time compression pipeline.

This module provides the CompressionPipeline, which splits a video into
contiguous chunks and compresses each chunk with its own codec on a worker
pool. Chunks share no state, so the first frame of every chunk is a Full
update.
"""

import logging
import threading
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from typing import Callable, Optional, Sequence

from vidflut.modules.video.errors import ConfigError, PipelineError
from vidflut.modules.video.protocols import DeltaCodec, FrameLoader
from vidflut.modules.video.raster import FrameUpdate

logger = logging.getLogger(__name__)


class ProgressCounter:
    """Thread-safe count of completed frames.

    Reading ``value`` never blocks the workers that increment it.
    """

    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    @property
    def value(self) -> int:
        return self._value

    def increment(self) -> None:
        with self._lock:
            self._value += 1


def split_chunks(loaders: Sequence[FrameLoader], chunk_size: int) -> list[Sequence[FrameLoader]]:
    """Partition loaders into contiguous chunks; the last one may be shorter."""
    if chunk_size <= 0:
        raise ConfigError("chunk_size must be greater than 0")
    return [loaders[start : start + chunk_size] for start in range(0, len(loaders), chunk_size)]


class CompressionPipeline:
    """Chunked parallel compressor.

    Attributes:
        codec_factory: Callable returning a fresh codec for each chunk.
        chunk_size: Number of frames per chunk.
        workers: Size of the worker pool.
        progress: Count of frames compressed so far.
    """

    def __init__(
        self,
        codec_factory: Callable[[], DeltaCodec],
        chunk_size: int,
        workers: int,
    ) -> None:
        """Initialize a CompressionPipeline.

        Args:
            codec_factory: Callable returning a fresh, independent codec.
            chunk_size: Number of frames per chunk.
            workers: Number of worker threads.

        Raises:
            ConfigError: If chunk_size or workers is not positive.
        """
        if chunk_size <= 0:
            raise ConfigError("chunk_size must be greater than 0")
        if workers <= 0:
            raise ConfigError("compress_threads must be greater than 0")
        self.codec_factory = codec_factory
        self.chunk_size = chunk_size
        self.workers = workers
        self.progress = ProgressCounter()
        self._cancel = threading.Event()

    def _compress_chunk(self, chunk: Sequence[FrameLoader]) -> list[FrameUpdate]:
        """Compress one chunk in frame order with its own codec.

        Returns the chunk's updates; the list belongs to this worker only.
        """
        try:
            codec = self.codec_factory()
        except Exception as e:
            self._cancel.set()
            raise PipelineError(chunk[0].index, e) from e
        updates: list[FrameUpdate] = []
        logger.debug(f"Compressing frames {chunk[0].index}-{chunk[-1].index}")

        for loader in chunk:
            if self._cancel.is_set():
                logger.debug(f"Chunk starting at frame {chunk[0].index} cancelled")
                return updates
            try:
                raster = loader.load()
                updates.append(codec.compress(raster))
            except Exception as e:
                self._cancel.set()
                raise PipelineError(loader.index, e) from e
            self.progress.increment()

        return updates

    def run(self, loaders: Sequence[FrameLoader]) -> list[FrameUpdate]:
        """Compress all frames.

        Args:
            loaders: Frame loaders in frame order.

        Returns:
            One update per input frame, in frame order.

        Raises:
            PipelineError: The failure at the lowest frame index among all
                workers; no partial result is returned.
        """
        self._cancel.clear()
        chunks = split_chunks(loaders, self.chunk_size)
        logger.info(
            f"Compressing {len(loaders)} frames in {len(chunks)} chunks "
            f"with {self.workers} workers"
        )

        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="compress") as pool:
            futures: list[Future[list[FrameUpdate]]] = [
                pool.submit(self._compress_chunk, chunk) for chunk in chunks
            ]
            done, _ = wait(futures, return_when=FIRST_EXCEPTION)
            if any(not f.cancelled() and f.exception() is not None for f in done):
                self._cancel.set()
                for future in futures:
                    future.cancel()
            # running chunks stop at their next frame; collect their errors too
            wait(futures)

        first_error = self._first_error(futures)
        if first_error is not None:
            logger.warning(f"Compression aborted: {first_error!s}")
            raise first_error

        updates: list[FrameUpdate] = []
        for future in futures:
            updates.extend(future.result())
        return updates

    @staticmethod
    def _first_error(futures: Sequence[Future[list[FrameUpdate]]]) -> Optional[PipelineError]:
        errors = []
        for future in futures:
            error = None if future.cancelled() else future.exception()
            if isinstance(error, PipelineError):
                errors.append(error)
            elif error is not None:
                errors.append(PipelineError(None, error))
        if not errors:
            return None
        # several chunks may fail together; report the earliest known frame
        return min(
            errors, key=lambda e: e.frame_index if e.frame_index is not None else float("inf")
        )
