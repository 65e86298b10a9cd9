"""Tests for the frame cache."""

import unittest
from pathlib import Path
from tempfile import TemporaryDirectory
from unittest.mock import MagicMock, patch

from vidflut.modules.video.cache import CacheKey, FrameCache
from vidflut.modules.video.source import VideoMetadata


def test_cache_id_depends_on_every_field(tmp_path: Path) -> None:
    """Test changing any part of the key changes the cache id."""
    base = CacheKey(tmp_path / "a.mp4", 320, 240, 30.0)
    variants = [
        CacheKey(tmp_path / "b.mp4", 320, 240, 30.0),
        CacheKey(tmp_path / "a.mp4", 640, 240, 30.0),
        CacheKey(tmp_path / "a.mp4", 320, 480, 30.0),
        CacheKey(tmp_path / "a.mp4", 320, 240, 25.0),
    ]
    assert base.cache_id() == CacheKey(tmp_path / "a.mp4", 320, 240, 30.0).cache_id()
    assert all(v.cache_id() != base.cache_id() for v in variants)


@patch("vidflut.modules.video.cache.probe_framerate")
@patch("vidflut.modules.video.cache.extract_frames")
class TestFrameCache(unittest.TestCase):
    """Test case for FrameCache.prepare."""

    def setUp(self) -> None:
        """Set up test fixtures."""
        self._tmp = TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.cache = FrameCache(self.root / "cache")
        self.key = CacheKey(self.root / "video.mp4", 320, 240, 0.0)

    def tearDown(self) -> None:
        """Clean up the temporary directory."""
        self._tmp.cleanup()

    def test_invalid_without_cache_id(self, mock_extract: MagicMock, mock_probe: MagicMock) -> None:
        """Test an empty cache is never valid."""
        assert not self.cache.is_valid(self.key)

    def test_prepare_extracts_then_reuses(
        self, mock_extract: MagicMock, mock_probe: MagicMock
    ) -> None:
        """Test frames are extracted once and then served from the cache."""
        mock_probe.return_value = 25.0
        mock_extract.return_value = VideoMetadata(fps=25.0, frame_count=3)

        first = self.cache.prepare(self.key)
        second = self.cache.prepare(self.key)

        assert first == second == VideoMetadata(fps=25.0, frame_count=3)
        mock_extract.assert_called_once_with(
            self.key.input_path, self.cache.frames_dir, 25.0, 320, 240
        )
        assert self.cache.is_valid(self.key)

    def test_requested_fps_skips_probe(
        self, mock_extract: MagicMock, mock_probe: MagicMock
    ) -> None:
        """Test an explicit frame rate is used as is."""
        key = CacheKey(self.root / "video.mp4", -1, -1, 12.0)
        mock_extract.return_value = VideoMetadata(fps=12.0, frame_count=1)

        self.cache.prepare(key)

        mock_probe.assert_not_called()
        assert mock_extract.call_args.args[2] == 12.0

    def test_changed_key_or_force_reextracts(
        self, mock_extract: MagicMock, mock_probe: MagicMock
    ) -> None:
        """Test a different key or force invalidates the cache."""
        mock_probe.return_value = 25.0
        mock_extract.return_value = VideoMetadata(fps=25.0, frame_count=3)

        self.cache.prepare(self.key)
        self.cache.prepare(CacheKey(self.root / "video.mp4", 640, 480, 0.0))
        assert mock_extract.call_count == 2

        self.cache.prepare(self.key, force=True)
        assert mock_extract.call_count == 3

    def test_clean_removes_everything(
        self, mock_extract: MagicMock, mock_probe: MagicMock
    ) -> None:
        """Test cleaning removes frames, metadata and the cache id."""
        self.cache.frames_dir.mkdir(parents=True)
        (self.cache.frames_dir / "frame1.ppm").write_bytes(b"")
        VideoMetadata(fps=1.0, frame_count=1).save(self.cache.metadata_path)
        self.cache.write_key(self.key)

        self.cache.clean()

        assert not self.cache.frames_dir.exists()
        assert not self.cache.metadata_path.exists()
        assert not self.cache.is_valid(self.key)
