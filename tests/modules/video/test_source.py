"""Tests for ffmpeg frame extraction and frame loading."""

import subprocess
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

import cv2
import numpy as np
import pytest

from vidflut.modules.video.errors import FrameLoadError, VideoSourceError
from vidflut.modules.video.raster import Color, Raster
from vidflut.modules.video.source import (
    DirectoryFrameSource,
    FrameFile,
    MemoryFrameSource,
    VideoMetadata,
    count_frames,
    extract_frames,
    probe_framerate,
)


def write_ppm(path: Path, rgb: np.ndarray) -> None:
    """Write an RGB array as a PPM file."""
    assert cv2.imwrite(str(path), cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR))


def completed(stdout: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=[], returncode=0, stdout=stdout, stderr="")


class TestProbeFramerate(unittest.TestCase):
    """Test case for probe_framerate."""

    @patch("vidflut.modules.video.source.subprocess.run")
    def test_fractional_rate(self, mock_run: MagicMock) -> None:
        """Test an NTSC rate is parsed from its fraction."""
        mock_run.return_value = completed("30000/1001\n")
        assert probe_framerate(Path("in.mp4")) == pytest.approx(29.97, abs=0.001)
        command = mock_run.call_args.args[0]
        assert command[0] == "ffprobe"
        assert "stream=r_frame_rate" in command

    @patch("vidflut.modules.video.source.subprocess.run")
    def test_invalid_rate(self, mock_run: MagicMock) -> None:
        """Test garbage output raises VideoSourceError."""
        for output in ("", "abc/def", "25/0", "0/1"):
            mock_run.return_value = completed(output)
            with pytest.raises(VideoSourceError):
                probe_framerate(Path("in.mp4"))

    @patch("vidflut.modules.video.source.subprocess.run")
    def test_missing_ffprobe(self, mock_run: MagicMock) -> None:
        """Test a missing binary raises VideoSourceError."""
        mock_run.side_effect = FileNotFoundError("ffprobe")
        with pytest.raises(VideoSourceError, match="ffprobe not found"):
            probe_framerate(Path("in.mp4"))

    @patch("vidflut.modules.video.source.subprocess.run")
    def test_ffprobe_failure(self, mock_run: MagicMock) -> None:
        """Test a failing ffprobe raises VideoSourceError."""
        mock_run.side_effect = subprocess.CalledProcessError(1, "ffprobe", stderr="bad input")
        with pytest.raises(VideoSourceError, match="bad input"):
            probe_framerate(Path("in.mp4"))


def test_extract_frames(tmp_path: Path) -> None:
    """Test ffmpeg is asked for PPM frames and the output is counted."""
    frames_dir = tmp_path / "frames"

    def fake_ffmpeg(command: list[str], **kwargs: object) -> subprocess.CompletedProcess:
        for i in range(1, 4):
            write_ppm(frames_dir / f"frame{i}.ppm", np.zeros((2, 2, 3), dtype=np.uint8))
        return completed()

    with patch("vidflut.modules.video.source.subprocess.run", side_effect=fake_ffmpeg) as run:
        metadata = extract_frames(Path("in.mp4"), frames_dir, 24.0, 320, -1)

    assert metadata == VideoMetadata(fps=24.0, frame_count=3)
    command = run.call_args.args[0]
    assert command[0] == "ffmpeg"
    assert "fps=24.0,scale=320:-1" in command
    assert command[-1] == str(frames_dir / "frame%d.ppm")


def test_extract_frames_without_output(tmp_path: Path) -> None:
    """Test an extraction producing no frames is an error."""
    with patch("vidflut.modules.video.source.subprocess.run", return_value=completed()):
        with pytest.raises(VideoSourceError, match="no frames"):
            extract_frames(Path("in.mp4"), tmp_path / "frames", 24.0)


def test_count_frames_stops_at_gap(tmp_path: Path) -> None:
    """Test only the consecutive run from frame1 is counted."""
    for i in (1, 2, 3, 5):
        (tmp_path / f"frame{i}.ppm").write_bytes(b"")
    (tmp_path / "other.txt").write_text("x")
    assert count_frames(tmp_path) == 3


def test_frame_file_load_rgb(tmp_path: Path) -> None:
    """Test a PPM frame is loaded with RGB channel order."""
    rgb = np.zeros((2, 3, 3), dtype=np.uint8)
    rgb[0, 0] = (255, 0, 0)
    rgb[1, 2] = (10, 20, 30)
    path = tmp_path / "frame1.ppm"
    write_ppm(path, rgb)

    raster = FrameFile(1, path).load()

    assert raster.shape == (3, 2)
    assert raster.pixel(0, 0) == Color(255, 0, 0)
    assert raster.pixel(2, 1) == Color(10, 20, 30)


def test_frame_file_missing(tmp_path: Path) -> None:
    """Test a missing frame raises FrameLoadError with its index."""
    with pytest.raises(FrameLoadError) as excinfo:
        FrameFile(7, tmp_path / "frame7.ppm").load()
    assert excinfo.value.index == 7


def test_frame_file_malformed(tmp_path: Path) -> None:
    """Test an unreadable frame raises FrameLoadError."""
    path = tmp_path / "frame1.ppm"
    path.write_bytes(b"P6\nnot a header\n")
    with pytest.raises(FrameLoadError):
        FrameFile(1, path).load()


def test_metadata_persistence(tmp_path: Path) -> None:
    """Test metadata survives a save and load."""
    path = tmp_path / "cache" / "metadata.yml"
    VideoMetadata(fps=29.97, frame_count=6572).save(path)
    assert VideoMetadata.load(path) == VideoMetadata(fps=29.97, frame_count=6572)


def test_metadata_malformed(tmp_path: Path) -> None:
    """Test broken metadata raises VideoSourceError."""
    path = tmp_path / "metadata.yml"
    path.write_text("fps: fast\n")
    with pytest.raises(VideoSourceError):
        VideoMetadata.load(path)
    with pytest.raises(VideoSourceError):
        VideoMetadata.load(tmp_path / "missing.yml")


def test_directory_source(tmp_path: Path) -> None:
    """Test a directory source lists frames 1..N."""
    source = DirectoryFrameSource(tmp_path, VideoMetadata(fps=12.5, frame_count=3))
    frames = source.frames()
    assert source.fps == 12.5
    assert [f.index for f in frames] == [1, 2, 3]
    assert frames[2].path == tmp_path / "frame3.ppm"


def test_memory_source() -> None:
    """Test a memory source wraps arrays and rasters."""
    raster = Raster.filled(2, 2, Color(1, 2, 3))
    source = MemoryFrameSource([raster, np.zeros((2, 2, 3), dtype=np.uint8)], fps=5.0)
    frames = source.frames()
    assert [f.index for f in frames] == [1, 2]
    assert frames[0].load() is raster
    assert frames[1].load().pixel(0, 0) == Color(0, 0, 0)
