import asyncio
import json
import subprocess
import sys

import pytest

from facecrop import video
from facecrop.video import (
    VideoInfo,
    VideoProcessingError,
    _parse_frame_rate,
    default_output_path,
    get_video_info,
    render_command,
    render_cropped_video,
    sample_command,
    sample_stream,
)


def _completed(stdout: str = "", returncode: int = 0):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr="")


def test_parse_frame_rate() -> None:
    assert _parse_frame_rate("30/1") == 30
    assert _parse_frame_rate("30000/1001") == 30
    assert _parse_frame_rate("25") == 25
    assert _parse_frame_rate("0/0") == 0
    assert _parse_frame_rate("N/A") == 0


def test_get_video_info_parses_ffprobe_json(monkeypatch) -> None:
    payload = {"streams": [{"width": 1920, "height": 1080, "r_frame_rate": "60000/1001", "codec_name": "h264"}]}
    monkeypatch.setattr(video.subprocess, "run", lambda *a, **kw: _completed(json.dumps(payload)))

    assert get_video_info("in.mp4") == VideoInfo(width=1920, height=1080, fps=60, codec="h264")


def test_get_video_info_without_video_stream(monkeypatch) -> None:
    monkeypatch.setattr(video.subprocess, "run", lambda *a, **kw: _completed('{"streams": []}'))

    with pytest.raises(VideoProcessingError, match="No video stream"):
        get_video_info("audio.m4a")


def test_get_video_info_wraps_ffprobe_failure(monkeypatch) -> None:
    def fail(cmd, **kwargs):
        raise subprocess.CalledProcessError(1, cmd, stderr="in.mp4: No such file")

    monkeypatch.setattr(video.subprocess, "run", fail)

    with pytest.raises(VideoProcessingError, match="No such file"):
        get_video_info("in.mp4")


def test_default_output_path() -> None:
    assert default_output_path("/videos/talk.mp4") == "talk_facecrop.mp4"
    assert default_output_path("clip.mkv") == "clip_facecrop.mkv"


def test_sample_command_selects_every_nth_frame() -> None:
    cmd = sample_command("in.mp4", 6, threads=4)

    assert cmd[cmd.index("-vf") + 1] == "select=not(mod(n\\,6))"
    assert cmd[cmd.index("-vcodec") + 1] == "png"
    assert cmd[-1] == "-"


def test_render_command_codec_is_optional() -> None:
    without = render_command("in.mp4", "out.mp4", "crop=1:1:0:0", threads=2)
    with_codec = render_command("in.mp4", "out.mp4", "crop=1:1:0:0", codec="libx264", threads=2)

    assert "-vcodec" not in without
    assert with_codec[with_codec.index("-vcodec") + 1] == "libx264"
    assert with_codec[with_codec.index("-filter:v:0") + 1] == "crop=1:1:0:0"
    assert with_codec[-1] == "out.mp4"


def test_render_failure_raises(monkeypatch) -> None:
    monkeypatch.setattr(video.subprocess, "run", lambda cmd: _completed(returncode=1))

    with pytest.raises(VideoProcessingError, match="exit code 1"):
        render_cropped_video("in.mp4", "out.mp4", "crop=1:1:0:0")


def _python_command(code: str):
    return lambda input_path, interval, threads: [sys.executable, "-c", code]


async def _collect(interval: int = 5) -> bytes:
    async with sample_stream("in.mp4", interval, threads=1, chunk_size=3) as chunks:
        return b"".join([chunk async for chunk in chunks])


def test_sample_stream_reads_process_stdout(monkeypatch) -> None:
    monkeypatch.setattr(
        video, "sample_command",
        _python_command("import sys; sys.stdout.buffer.write(b'abcdefgh')"),
    )

    assert asyncio.run(_collect()) == b"abcdefgh"


def test_sample_stream_nonzero_exit_raises(monkeypatch) -> None:
    monkeypatch.setattr(
        video, "sample_command",
        _python_command("import sys; sys.stderr.write('bad input'); sys.exit(3)"),
    )

    with pytest.raises(VideoProcessingError, match="bad input"):
        asyncio.run(_collect())


def test_missing_ffprobe_binary_raises_processing_error(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(video.config, "FFPROBE_BIN", str(tmp_path / "no-ffprobe"))

    with pytest.raises(VideoProcessingError, match="Could not run FFprobe"):
        get_video_info("in.mp4")


def test_unparseable_ffprobe_output_raises_processing_error(monkeypatch) -> None:
    monkeypatch.setattr(video.subprocess, "run", lambda *a, **kw: _completed("not json"))

    with pytest.raises(VideoProcessingError, match="Unreadable FFprobe output"):
        get_video_info("in.mp4")


def test_missing_ffmpeg_binary_fails_sampling(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(video.config, "FFMPEG_BIN", str(tmp_path / "no-ffmpeg"))

    with pytest.raises(VideoProcessingError, match="Could not run FFmpeg"):
        asyncio.run(_collect())


def test_missing_ffmpeg_binary_fails_render(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(video.config, "FFMPEG_BIN", str(tmp_path / "no-ffmpeg"))

    with pytest.raises(VideoProcessingError, match="Could not run FFmpeg"):
        render_cropped_video("in.mp4", "out.mp4", "crop=1:1:0:0")
