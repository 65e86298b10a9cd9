"""Network output to the Pixelflut server.

This module provides the TcpConnection to a canvas server and the
FrameSender, which splits a frame's pixels into batches, encodes them on a
worker pool and writes them over the shared connection.
"""

import logging
import socket
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import BinaryIO, Optional

from vidflut.modules.video.errors import ConfigError, SendError
from vidflut.modules.video.protocols import Connection
from vidflut.modules.video.raster import FrameUpdate, PixelBatch
from vidflut.modules.video.wire import WireProtocol, encode_batch

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 400


def parse_host(host: str) -> tuple[str, int]:
    """Split ``host:port`` into its parts.

    Raises:
        ConfigError: If the port is missing or not a number.
    """
    name, sep, port = host.rpartition(":")
    if not sep or not name or not port.isdigit():
        raise ConfigError(f"Invalid host '{host}' (expected host:port)")
    return name.strip("[]"), int(port)


class TcpConnection:
    """Buffered TCP connection to a canvas server.

    Attributes:
        host: Server address as ``host:port``.
        is_open: Whether the socket is connected.
    """

    def __init__(self, host: str, timeout: Optional[float] = 10.0) -> None:
        self.host = host
        self.timeout = timeout
        self._address = parse_host(host)
        self._socket: Optional[socket.socket] = None
        self._stream: Optional[BinaryIO] = None
        self.is_open = False

    def open(self) -> None:
        """Connect to the server.

        Raises:
            SendError: If the connection cannot be established.
        """
        if self.is_open:
            logger.warning("Connection is already open")
            return

        logger.info(f"Connecting to {self.host}")
        try:
            self._socket = socket.create_connection(self._address, timeout=self.timeout)
        except OSError as e:
            raise SendError(f"Failed to connect to {self.host}: {e!s}") from e
        self._socket.settimeout(None)
        self._stream = self._socket.makefile("wb")
        self.is_open = True

    def write(self, data: bytes) -> None:
        if self._stream is None:
            raise SendError("Connection is not open")
        self._stream.write(data)

    def flush(self) -> None:
        if self._stream is None:
            raise SendError("Connection is not open")
        self._stream.flush()

    def close(self) -> None:
        """Close the connection."""
        if not self.is_open:
            return
        logger.info(f"Closing connection to {self.host}")
        try:
            if self._stream is not None:
                self._stream.close()
        except OSError as e:
            logger.debug(f"Ignoring error while closing stream: {e!s}")
        finally:
            if self._socket is not None:
                self._socket.close()
            self._stream = None
            self._socket = None
            self.is_open = False

    def __enter__(self) -> "TcpConnection":
        """Enter context manager."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore
        """Exit context manager."""
        self.close()


class FrameSender:
    """Writes frame updates to a connection in parallel batches.

    Writes are serialized by a lock, one write and flush per batch, so that
    commands from different workers never interleave. Batches may reach the
    server in any order.

    Attributes:
        connection: Shared connection to the canvas server.
        protocol: Wire format.
        canvas: Target canvas id.
        offset: (x, y) added to every pixel position.
        batch_size: Pixels per batch.
        workers: Size of the worker pool.
    """

    def __init__(
        self,
        connection: Connection,
        protocol: WireProtocol = WireProtocol.PLAINTEXT,
        canvas: int = 0,
        offset: tuple[int, int] = (0, 0),
        batch_size: int = DEFAULT_BATCH_SIZE,
        workers: int = 4,
    ) -> None:
        if batch_size <= 0:
            raise ConfigError("batch_size must be greater than 0")
        if workers <= 0:
            raise ConfigError("send_threads must be greater than 0")
        self.connection = connection
        self.protocol = protocol
        self.canvas = canvas
        self.offset = offset
        self.batch_size = batch_size
        self.workers = workers
        self._lock = threading.Lock()
        self._pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="send")

        logger.debug(
            f"Initialized FrameSender with protocol={protocol.value}, canvas={canvas}, "
            f"offset={offset}, batch_size={batch_size}, workers={workers}"
        )

    def _send_batch(self, batch: PixelBatch) -> None:
        payload = encode_batch(batch, self.offset, self.canvas, self.protocol)
        with self._lock:
            try:
                self.connection.write(payload)
                self.connection.flush()
            except BrokenPipeError as e:
                logger.error("Connection closed by server")
                raise SendError("Unable to send frame: Connection closed by server") from e
            except OSError as e:
                logger.error(f"Write failed: {e!s}")
                raise SendError(f"Unable to send frame: {e!s}") from e

    def send(self, update: FrameUpdate) -> int:
        """Send one frame update.

        Args:
            update: The frame's update; Empty sends nothing.

        Returns:
            Number of pixels sent.

        Raises:
            SendError: If any batch could not be written.
        """
        pixels = update.to_pixels()
        if len(pixels) == 0:
            return 0

        futures = [
            self._pool.submit(self._send_batch, pixels[start : start + self.batch_size])
            for start in range(0, len(pixels), self.batch_size)
        ]
        for future in futures:
            future.result()
        return len(pixels)

    def close(self) -> None:
        """Shut down the worker pool."""
        self._pool.shutdown(wait=True)

    def __enter__(self) -> "FrameSender":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore
        self.close()
