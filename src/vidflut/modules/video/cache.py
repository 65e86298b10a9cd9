"""Disk cache of extracted frames.

Frames are extracted once per (input, size, fps) combination. The cache
directory stores the frames, their metadata and a cache id derived from that
combination.
"""

import hashlib
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from vidflut.modules.video.source import VideoMetadata, extract_frames, probe_framerate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheKey:
    """Identity of an extraction.

    Attributes:
        input_path: Video file.
        width: Requested width, -1 for the source width.
        height: Requested height, -1 for the source height.
        fps: Requested frame rate, 0 for the source frame rate.
    """

    input_path: Path
    width: int = -1
    height: int = -1
    fps: float = 0.0

    def cache_id(self) -> str:
        identity = f"{self.input_path.resolve()}|{self.width}|{self.height}|{self.fps!r}"
        return hashlib.sha256(identity.encode("utf-8")).hexdigest()


class FrameCache:
    """Directory holding extracted frames for the most recent input."""

    def __init__(self, root: Path) -> None:
        self.root = root

    @property
    def frames_dir(self) -> Path:
        return self.root / "frames"

    @property
    def metadata_path(self) -> Path:
        return self.root / "metadata.yml"

    @property
    def cache_id_path(self) -> Path:
        return self.root / "cache_id"

    def is_valid(self, key: CacheKey) -> bool:
        """Check whether the cached frames were extracted for this key."""
        try:
            stored = self.cache_id_path.read_text().strip()
        except OSError:
            return False
        return stored == key.cache_id() and self.metadata_path.is_file()

    def write_key(self, key: CacheKey) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        self.cache_id_path.write_text(key.cache_id() + "\n")

    def clean(self) -> None:
        """Remove all cached frames and metadata."""
        logger.debug(f"Cleaning frame cache at {self.root}")
        shutil.rmtree(self.frames_dir, ignore_errors=True)
        self.metadata_path.unlink(missing_ok=True)
        self.cache_id_path.unlink(missing_ok=True)

    def prepare(self, key: CacheKey, force: bool = False) -> VideoMetadata:
        """Make the frames for ``key`` available, extracting them if needed.

        Args:
            key: Requested extraction.
            force: Re-extract even if the cache is valid.

        Returns:
            Metadata of the cached frames.

        Raises:
            VideoSourceError: If extraction fails.
        """
        if not force and self.is_valid(key):
            logger.info(f"Using cached frames in {self.frames_dir}")
            return VideoMetadata.load(self.metadata_path)

        self.clean()
        fps = key.fps if key.fps > 0 else probe_framerate(key.input_path)
        metadata = extract_frames(key.input_path, self.frames_dir, fps, key.width, key.height)
        metadata.save(self.metadata_path)
        self.write_key(key)
        return metadata
