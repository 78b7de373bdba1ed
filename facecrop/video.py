"""Video probing, frame sampling and rendering using FFmpeg."""

import asyncio
import json
import logging
import math
import subprocess
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Optional

from facecrop.config import config

log = logging.getLogger(__name__)


class VideoProcessingError(Exception):
    """Video processing error."""
    pass


@dataclass(frozen=True)
class VideoInfo:
    width: int
    height: int
    fps: int
    codec: str


def _parse_frame_rate(rate: str) -> int:
    """Round an ffprobe rate like "30000/1001" to whole frames per second."""
    num, _, den = rate.partition("/")
    try:
        value = float(num) / float(den or 1)
    except (ValueError, ZeroDivisionError):
        return 0
    return math.floor(value + 0.5)


def get_video_info(video_path: str) -> VideoInfo:
    """
    Get video stream information using FFprobe.

    Raises:
        VideoProcessingError: If FFprobe fails or there is no video stream
    """
    cmd = [
        config.FFPROBE_BIN,
        "-v", "error",
        "-select_streams", "v:0",
        "-show_entries", "stream=width,height,r_frame_rate,codec_name",
        "-of", "json",
        video_path,
    ]

    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=True)
    except subprocess.CalledProcessError as e:
        raise VideoProcessingError(f"FFprobe failed: {e.stderr}") from e
    except OSError as e:
        raise VideoProcessingError(f"Could not run FFprobe ({config.FFPROBE_BIN}): {e}") from e

    try:
        streams = json.loads(result.stdout or "{}").get("streams", [])
    except json.JSONDecodeError as e:
        raise VideoProcessingError(f"Unreadable FFprobe output for {video_path}: {e}") from e
    if not streams:
        raise VideoProcessingError(f"No video stream in {video_path}")

    stream = streams[0]
    return VideoInfo(
        width=int(stream.get("width", 0)),
        height=int(stream.get("height", 0)),
        fps=_parse_frame_rate(stream.get("r_frame_rate", "0/1")),
        codec=stream.get("codec_name", ""),
    )


def default_output_path(input_path: str) -> str:
    """``clip.mp4`` -> ``clip_facecrop.mp4`` in the working directory."""
    p = Path(input_path)
    return f"{p.stem}_facecrop{p.suffix}"


def sample_command(input_path: str, interval: int, threads: int) -> list[str]:
    """FFmpeg command writing every ``interval``-th frame to stdout as PNGs."""
    return [
        config.FFMPEG_BIN,
        "-v", "error",
        "-i", input_path,
        "-an",
        "-vf", f"select=not(mod(n\\,{interval}))",
        "-vsync", "0",
        "-f", "image2pipe",
        "-vcodec", "png",
        "-threads", str(threads),
        "-",
    ]


async def _read_chunks(stream: asyncio.StreamReader, size: int) -> AsyncIterator[bytes]:
    while True:
        chunk = await stream.read(size)
        if not chunk:
            break
        yield chunk


@asynccontextmanager
async def sample_stream(
    input_path: str,
    interval: int,
    threads: Optional[int] = None,
    chunk_size: Optional[int] = None,
):
    """
    Run FFmpeg and yield an async iterator over its raw PNG stdout chunks.

    The process is waited on when the block exits; a non-zero exit raises
    VideoProcessingError.
    """
    cmd = sample_command(input_path, interval, threads or config.THREADS)
    log.debug("Running: %s", " ".join(cmd))
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise VideoProcessingError(f"Could not run FFmpeg ({cmd[0]}): {e}") from e
    # Drain stderr alongside stdout so a chatty ffmpeg never blocks
    stderr_task = asyncio.create_task(proc.stderr.read())
    try:
        yield _read_chunks(proc.stdout, chunk_size or config.READ_CHUNK_SIZE)
    except BaseException:
        if proc.returncode is None:
            proc.kill()
        await proc.wait()
        stderr_task.cancel()
        raise

    stderr = await stderr_task
    returncode = await proc.wait()
    if returncode != 0:
        raise VideoProcessingError(
            f"FFmpeg frame sampling failed ({returncode}): {stderr.decode(errors='replace')}"
        )


def render_command(
    input_path: str,
    output_path: str,
    crop_filter: str,
    codec: Optional[str] = None,
    threads: Optional[int] = None,
) -> list[str]:
    cmd = [
        config.FFMPEG_BIN,
        "-y",
        "-i", input_path,
        "-acodec", "copy",
        "-filter:v:0", crop_filter,
    ]
    if codec:
        cmd += ["-vcodec", codec]
    cmd += ["-threads", str(threads or config.THREADS), output_path]
    return cmd


def render_cropped_video(
    input_path: str,
    output_path: str,
    crop_filter: str,
    codec: Optional[str] = None,
    threads: Optional[int] = None,
) -> str:
    """
    Render the cropped video.

    FFmpeg output is passed through to the terminal so encode progress stays
    visible.

    Raises:
        VideoProcessingError: If FFmpeg fails
    """
    cmd = render_command(input_path, output_path, crop_filter, codec, threads)
    log.info("Rendering %s -> %s", input_path, output_path)

    try:
        result = subprocess.run(cmd)
    except OSError as e:
        raise VideoProcessingError(f"Could not run FFmpeg ({cmd[0]}): {e}") from e
    if result.returncode != 0:
        raise VideoProcessingError(f"FFmpeg render failed with exit code {result.returncode}")

    log.info("Video rendering complete")
    return output_path
