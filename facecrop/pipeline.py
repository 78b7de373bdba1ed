"""
pipeline.py – Drive one face-crop run from input video to rendered output.

Samples are processed strictly in order: each frame is decoded and its
detection awaited, and the crop appended to the timeline, before the next
frame is pulled from the stream. The timeline order therefore always matches
the sample order, whatever the detector's latency.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import AsyncIterable, Awaitable, Callable, Optional

from facecrop.config import config
from facecrop.crop import (
    Detection,
    clamp_crop,
    compute_crop,
    is_out_of_frame,
    target_size,
)
from facecrop.expression import crop_filter, synthesize
from facecrop.frames import aiter_frames
from facecrop.timeline import Timeline
from facecrop.video import (
    VideoInfo,
    get_video_info,
    render_cropped_video,
    sample_stream,
)

log = logging.getLogger(__name__)

PROGRESS_EVERY = 10

Decoder = Callable[[bytes], object]
Detector = Callable[[object], Awaitable[Optional[Detection]]]


@dataclass
class CropSettings:
    """Options for a single run. ``None`` fields fall back to config."""
    interval: Optional[int] = None
    interpolate: bool = config.LERP
    hold_last: bool = config.HOLD_LAST
    clamp_to_frame: bool = config.CLAMP_TO_FRAME
    aspect: tuple[int, int] = field(default_factory=config.aspect)
    codec: Optional[str] = None
    threads: Optional[int] = None


@dataclass
class CropPlan:
    """Everything needed to render: the crop size, its filter and the timeline behind it."""
    width: int
    height: int
    interval: int
    timeline: Timeline
    filter: str
    source: Optional[VideoInfo] = None


def default_interval(fps: int) -> int:
    """Half the frame rate rounded half up, so two samples per second; never below 1."""
    return max(1, math.floor(fps / 2 + 0.5))


async def build_timeline(
    frames: AsyncIterable[bytes],
    decode: Decoder,
    detect: Detector,
    target_width: int,
    target_height: int,
    source_width: Optional[int] = None,
    clamp_to_frame: bool = False,
) -> Timeline:
    """
    Run decode + detect on every frame in order and record one crop per frame.

    Decoder and detector errors propagate unchanged.
    """
    timeline = Timeline()
    async for frame in frames:
        detection = await detect(decode(frame))
        crop = compute_crop(detection, target_width, target_height, timeline.last())

        if source_width is not None and is_out_of_frame(crop, source_width):
            if clamp_to_frame:
                crop = clamp_crop(crop, source_width)
            else:
                log.debug("Sample %d crop x=%d lies outside the %dpx frame",
                          len(timeline), crop.x, source_width)

        timeline.append(crop)
        if len(timeline) % PROGRESS_EVERY == 0:
            log.info("Analyzed %d samples", len(timeline))

    log.info("Analyzed %d samples total", len(timeline))
    return timeline


def plan_from_timeline(
    timeline: Timeline,
    interval: int,
    width: int,
    height: int,
    interpolate: bool = True,
    hold_last: bool = True,
) -> CropPlan:
    program = synthesize(timeline, interval, interpolate=interpolate, hold_last=hold_last)
    return CropPlan(
        width=width,
        height=height,
        interval=interval,
        timeline=timeline,
        filter=crop_filter(program, width, height),
    )


async def plan_crop(
    input_path: str,
    decode: Decoder,
    detect: Detector,
    settings: Optional[CropSettings] = None,
) -> CropPlan:
    """
    Sample the input video, track the face and synthesize the crop filter.

    Raises:
        VideoProcessingError: If probing or sampling fails
        EmptyTimeline: If the video produced no sampled frames
    """
    settings = settings or CropSettings()
    info = get_video_info(input_path)
    interval = settings.interval or config.INTERVAL or default_interval(info.fps)
    width, height = target_size(info.height, settings.aspect)

    log.info("Original resolution: %dx%d @ %d fps", info.width, info.height, info.fps)
    log.info("Target resolution: %dx%d", width, height)
    log.info("Interval: %d, lerp: %s", interval, settings.interpolate)

    async with sample_stream(input_path, interval, settings.threads) as chunks:
        frames = aiter_frames(chunks, config.FRAME_DELIMITER, flush_tail=True)
        timeline = await build_timeline(
            frames,
            decode,
            detect,
            width,
            height,
            source_width=info.width,
            clamp_to_frame=settings.clamp_to_frame,
        )

    plan = plan_from_timeline(
        timeline,
        interval,
        width,
        height,
        interpolate=settings.interpolate,
        hold_last=settings.hold_last,
    )
    plan.source = info
    return plan


def resolve_codec(codec: Optional[str], input_codec: str) -> Optional[str]:
    """``copy`` means "encode with the input's codec", not stream copy."""
    if codec == "copy":
        return input_codec
    return codec or None


async def run(
    input_path: str,
    output_path: str,
    decode: Decoder,
    detect: Detector,
    settings: Optional[CropSettings] = None,
) -> str:
    settings = settings or CropSettings()
    plan = await plan_crop(input_path, decode, detect, settings)
    codec = resolve_codec(settings.codec or config.CODEC, plan.source.codec)
    log.info("Codec: %s", codec or "ffmpeg default")
    return render_cropped_video(
        input_path,
        output_path,
        plan.filter,
        codec=codec,
        threads=settings.threads,
    )
