"""
Configuration module for managing application settings.

This module provides classes and methods to handle application configuration,
including reading environment variables, named playback targets and setting
up logging.
"""

from dataclasses import dataclass, field, replace
from os import getenv
from os.path import dirname, join
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from yaml import safe_load

from vidflut.modules.video.codec import Algorithm, CompressionLevel
from vidflut.modules.video.errors import ConfigError
from vidflut.modules.video.sender import DEFAULT_BATCH_SIZE, parse_host
from vidflut.modules.video.wire import WireProtocol

ENV_PREFIX = "VIDFLUT_"

# Domain Object


@dataclass(frozen=True)
class Target:
    """
    A named Pixelflut server.

    Attributes:
        host (str): Server address as host:port.
        protocol (WireProtocol): Wire format the server speaks.
        canvas (int): Canvas id on the server.
    """

    host: str
    protocol: WireProtocol = WireProtocol.PLAINTEXT
    canvas: int = 0


@dataclass
class Config:
    """
    Configuration class for the application.

    Attributes:
        compress_threads (int): Number of threads for ahead-of-time compression.
        send_threads (int): Number of threads writing to the canvas.
        cache_dir (Path): Directory holding extracted frames.
        logging_config (dict): Logging configuration.
        targets (dict): Named targets from the targets file.
    """

    compress_threads: int  # Number of compression workers
    send_threads: int  # Number of send workers
    cache_dir: Path  # Frame cache directory
    logging_config: dict[str, Any]  # Logging configuration
    targets: dict[str, Target] = field(default_factory=dict)


@dataclass
class PlaybackOptions:
    """
    Parameter bundle of one playback run.

    Attributes:
        host (str): Server address as host:port, or None to use the target's.
        target (str): Name of a configured target.
        protocol (WireProtocol): Wire format.
        canvas (int): Canvas id.
        x_offset (int): Horizontal offset in pixels.
        y_offset (int): Vertical offset in pixels.
        algorithm (Algorithm): Delta codec strategy.
        level (CompressionLevel): Compression level.
        chunk_size (int): Frames per ahead-of-time compression chunk.
        compress_threads (int): Compression workers.
        send_threads (int): Send workers.
        batch_size (int): Pixels per network write.
        just_in_time (bool): Compress while playing instead of ahead of time.
        loop (bool): Restart the video after the last frame.
        debug (bool): Show the selected pixels on a gray canvas.
    """

    host: Optional[str] = None
    target: Optional[str] = None
    protocol: WireProtocol = WireProtocol.PLAINTEXT
    canvas: int = 0
    x_offset: int = 0
    y_offset: int = 0
    algorithm: Algorithm = Algorithm.BUDGET
    level: CompressionLevel = field(default_factory=lambda: CompressionLevel.parse("medium"))
    chunk_size: int = 100
    compress_threads: int = 8
    send_threads: int = 4
    batch_size: int = DEFAULT_BATCH_SIZE
    just_in_time: bool = False
    loop: bool = True
    debug: bool = False

    def with_target(self, targets: dict[str, Target]) -> "PlaybackOptions":
        """
        Resolve the named target into host, protocol and canvas.

        Raises:
            ConfigError: If the target is not configured.
        """
        if self.target is None:
            return self
        if self.target not in targets:
            raise ConfigError(f"Target '{self.target}' not found in config")
        target = targets[self.target]
        return replace(self, host=target.host, protocol=target.protocol, canvas=target.canvas)

    def validate(self) -> None:
        """
        Check the options before any expensive work starts.

        Raises:
            ConfigError: If an option is out of range or the host is missing.
        """
        if self.host is None:
            raise ConfigError("host or target must be specified")
        parse_host(self.host)
        if self.compress_threads <= 0:
            raise ConfigError("compress_threads must be greater than 0")
        if self.send_threads <= 0:
            raise ConfigError("send_threads must be greater than 0")
        if self.chunk_size <= 0:
            raise ConfigError("chunk_size must be greater than 0")
        if self.batch_size <= 0:
            raise ConfigError("batch_size must be greater than 0")
        if self.x_offset < 0 or self.y_offset < 0:
            raise ConfigError("Offsets must not be negative")
        if not 0 <= self.canvas <= 255:
            raise ConfigError("canvas must be between 0 and 255")
        if self.algorithm == Algorithm.THRESHOLD:
            self.level.threshold_params()


# Repository Implementation


def _positive_int(name: str, default: str) -> int:
    raw = getenv(f"{ENV_PREFIX}{name}", default)
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{ENV_PREFIX}{name} must be an integer, got '{raw}'") from None
    if value <= 0:
        raise ConfigError(f"{ENV_PREFIX}{name} must be greater than 0")
    return value


def _parse_targets(raw: Any, path: Path) -> dict[str, Target]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Targets file {path} must contain a mapping of target names")

    targets = {}
    for name, entry in raw.items():
        if not isinstance(entry, dict) or "host" not in entry:
            raise ConfigError(f"Target '{name}' in {path} must define a host")
        targets[str(name)] = Target(
            host=str(entry["host"]),
            protocol=WireProtocol.parse(str(entry.get("protocol", "plaintext"))),
            canvas=int(entry.get("canvas", 0)),
        )
    return targets


@dataclass
class ConfigRepo:
    """Repository for configuration."""

    def read(self) -> Config:
        """
        Read configuration.

        Returns:
            Config: Configuration object

        Raises:
            FileNotFoundError: If the logging configuration file is not found.
            ConfigError: If a setting or the targets file is invalid.
        """
        load_dotenv()

        compress_threads = _positive_int("COMPRESS_THREADS", "8")
        send_threads = _positive_int("SEND_THREADS", "4")
        cache_dir = Path(getenv(f"{ENV_PREFIX}CACHE_DIR", str(Path.home() / ".cache" / "vidflut")))
        logging_config_path = Path(
            getenv(f"{ENV_PREFIX}LOGGING_CONFIG_PATH", join(dirname(__file__), "logging.yml"))
        )
        targets_path = Path(
            getenv(
                f"{ENV_PREFIX}TARGETS_PATH",
                str(Path.home() / ".config" / "vidflut" / "targets.yml"),
            )
        )

        if logging_config_path.exists():
            with open(logging_config_path) as f:
                logging_config = safe_load(f)
        else:
            raise FileNotFoundError(f"Logging configuration file not found: {logging_config_path}")

        targets: dict[str, Target] = {}
        if targets_path.is_file():
            with open(targets_path) as f:
                targets = _parse_targets(safe_load(f), targets_path)

        return Config(
            compress_threads=compress_threads,
            send_threads=send_threads,
            cache_dir=cache_dir,
            logging_config=logging_config,
            targets=targets,
        )
