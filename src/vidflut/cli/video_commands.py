"""CLI commands for extracting and playing videos on a Pixelflut canvas."""

import logging
import sys
import threading
from pathlib import Path
from typing import Optional, Sequence

import click

from vidflut.cli._utils import AliasedGroup, parse_compression_level
from vidflut.config.settings import Config, PlaybackOptions
from vidflut.modules.video import (
    Algorithm,
    CompressionLevel,
    CompressionPipeline,
    FrameSender,
    TcpConnection,
    VideoPlayer,
    VidflutError,
    WireProtocol,
)
from vidflut.modules.video.cache import CacheKey, FrameCache
from vidflut.modules.video.codec import codec_factory
from vidflut.modules.video.protocols import FrameLoader, FrameSource
from vidflut.modules.video.raster import FrameUpdate
from vidflut.modules.video.source import DirectoryFrameSource

logger = logging.getLogger(__name__)


def _compress_with_progress(
    pipeline: CompressionPipeline, loaders: Sequence[FrameLoader]
) -> list[FrameUpdate]:
    """Run the pipeline while a monitor thread draws a progress bar."""
    finished = threading.Event()

    def monitor() -> None:
        with click.progressbar(
            length=len(loaders), label="Compressing frames", file=sys.stderr
        ) as bar:
            reported = 0
            while True:
                done = finished.wait(0.2)
                value = pipeline.progress.value
                bar.update(value - reported)
                reported = value
                if done:
                    break

    thread = threading.Thread(target=monitor, daemon=True)
    thread.start()
    try:
        return pipeline.run(loaders)
    finally:
        finished.set()
        thread.join()


def _prepare_frames(
    config: Config,
    input_path: Path,
    width: Optional[int],
    height: Optional[int],
    fps: Optional[float],
    nocache: bool,
) -> DirectoryFrameSource:
    if width is not None and width <= 0:
        raise click.BadParameter("--width must be positive", param_hint="--width")
    if height is not None and height <= 0:
        raise click.BadParameter("--height must be positive", param_hint="--height")
    if fps is not None and fps <= 0:
        raise click.BadParameter("--fps must be greater than 0.0", param_hint="--fps")

    cache = FrameCache(config.cache_dir)
    key = CacheKey(
        input_path=input_path,
        width=width if width is not None else -1,
        height=height if height is not None else -1,
        fps=fps if fps is not None else 0.0,
    )
    metadata = cache.prepare(key, force=nocache)
    return DirectoryFrameSource(cache.frames_dir, metadata)


@click.group(name="video", cls=AliasedGroup)
def video_group() -> None:
    """Video extraction and playback commands."""
    pass


@video_group.command(name="play")
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--host", "-H", default=None, help="Pixelflut server as host:port")
@click.option("--target", "-t", default=None, help="Name of a configured target")
@click.option(
    "--protocol",
    type=click.Choice([p.value for p in WireProtocol]),
    default=WireProtocol.PLAINTEXT.value,
    help="Wire protocol (default: plaintext)",
)
@click.option("--canvas", type=int, default=0, help="Canvas id for binary protocols (default: 0)")
@click.option("-x", "x_offset", type=int, default=0, help="Horizontal offset in px (default: 0)")
@click.option("-y", "y_offset", type=int, default=0, help="Vertical offset in px (default: 0)")
@click.option("--width", type=int, default=None, help="Width in px [default: same as source]")
@click.option("--height", type=int, default=None, help="Height in px [default: same as source]")
@click.option("--fps", type=float, default=None, help="Frame rate [default: same as source]")
@click.option(
    "--compression",
    "-c",
    default="medium",
    callback=parse_compression_level,
    help="none, low, medium, high, extreme, or a budget in 1024 px/s (default: medium)",
)
@click.option(
    "--algorithm",
    "-a",
    type=click.Choice([a.value for a in Algorithm]),
    default=Algorithm.BUDGET.value,
    help="Delta compression algorithm (default: budget)",
)
@click.option("--chunk-size", type=int, default=100, help="Frames per compression chunk")
@click.option("--compress-threads", type=int, default=None, help="Compression worker threads")
@click.option("--send-threads", type=int, default=None, help="Network worker threads")
@click.option("--nocache", is_flag=True, help="Ignore the frame cache and re-extract frames")
@click.option("--jit", is_flag=True, help="Compress frames just in time instead of ahead of time")
@click.option("--loop/--once", default=True, help="Loop the video forever (default: loop)")
@click.option("--debug", is_flag=True, help="Show the transmitted pixels on a gray canvas")
@click.pass_obj
def play(
    config: Config,
    input_path: Path,
    host: Optional[str],
    target: Optional[str],
    protocol: str,
    canvas: int,
    x_offset: int,
    y_offset: int,
    width: Optional[int],
    height: Optional[int],
    fps: Optional[float],
    compression: CompressionLevel,
    algorithm: str,
    chunk_size: int,
    compress_threads: Optional[int],
    send_threads: Optional[int],
    nocache: bool,
    jit: bool,
    loop: bool,
    debug: bool,
) -> None:
    """Play a video on a Pixelflut canvas.

    Frames are extracted with ffmpeg (and cached), delta-compressed so that
    only perceptibly changed pixels are sent, and streamed at the video's
    frame rate.
    """
    try:
        options = PlaybackOptions(
            host=host,
            target=target,
            protocol=WireProtocol.parse(protocol),
            canvas=canvas,
            x_offset=x_offset,
            y_offset=y_offset,
            algorithm=Algorithm(algorithm),
            level=compression,
            chunk_size=chunk_size,
            compress_threads=(
                compress_threads if compress_threads is not None else config.compress_threads
            ),
            send_threads=send_threads if send_threads is not None else config.send_threads,
            just_in_time=jit,
            loop=loop,
            debug=debug,
        ).with_target(config.targets)
        options.validate()
        assert options.host is not None

        source: FrameSource = _prepare_frames(config, input_path, width, height, fps, nocache)
        loaders = source.frames()
        make_codec = codec_factory(options.algorithm, options.level, source.fps, options.debug)

        updates: list[FrameUpdate] = []
        if not options.just_in_time:
            pipeline = CompressionPipeline(
                make_codec, options.chunk_size, options.compress_threads
            )
            updates = _compress_with_progress(pipeline, loaders)

        with (
            TcpConnection(options.host) as connection,
            FrameSender(
                connection,
                protocol=options.protocol,
                canvas=options.canvas,
                offset=(options.x_offset, options.y_offset),
                batch_size=options.batch_size,
                workers=options.send_threads,
            ) as sender,
        ):
            click.echo(f"Playing video on {options.host}")
            player = VideoPlayer(sender, source.fps, loop=options.loop)
            try:
                if options.just_in_time:
                    player.play_just_in_time(loaders, make_codec)
                else:
                    player.play_ahead_of_time(updates)
            except KeyboardInterrupt:
                logger.info("Keyboard interrupt received, stopping playback")
                click.echo("Stopping playback...")
                player.stop()

    except VidflutError as e:
        logger.error(f"{e.__class__.__name__}: {e!s}")
        click.echo(f"Error: {e!s}", err=True)
        sys.exit(1)
    except click.ClickException:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error: {e!s}")
        click.echo(f"Unexpected error: {e!s}", err=True)
        sys.exit(1)


@video_group.command(name="extract")
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--width", type=int, default=None, help="Width in px [default: same as source]")
@click.option("--height", type=int, default=None, help="Height in px [default: same as source]")
@click.option("--fps", type=float, default=None, help="Frame rate [default: same as source]")
@click.option("--nocache", is_flag=True, help="Re-extract even if cached frames are valid")
@click.pass_obj
def extract(
    config: Config,
    input_path: Path,
    width: Optional[int],
    height: Optional[int],
    fps: Optional[float],
    nocache: bool,
) -> None:
    """Extract the frames of a video into the frame cache."""
    try:
        source = _prepare_frames(config, input_path, width, height, fps, nocache)
        click.echo(
            f"{source.metadata.frame_count} frames at {source.fps:.3f} fps in {source.frames_dir}"
        )
    except VidflutError as e:
        logger.error(f"{e.__class__.__name__}: {e!s}")
        click.echo(f"Error: {e!s}", err=True)
        sys.exit(1)


@video_group.command(name="targets")
@click.pass_obj
def list_targets(config: Config) -> None:
    """Show the configured targets."""
    if not config.targets:
        click.echo("No targets configured")
        return

    click.echo("===== Targets =====")
    for name, target in sorted(config.targets.items()):
        click.echo(f"{name}: {target.host} ({target.protocol.value}, canvas {target.canvas})")
