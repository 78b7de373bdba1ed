"""facecrop – Face-following vertical crops for widescreen video."""

from facecrop.crop import CropRect, Detection, compute_crop, target_size
from facecrop.expression import Program, crop_filter, synthesize
from facecrop.frames import FrameSplitter, iter_frames
from facecrop.timeline import CropSample, EmptyTimeline, Timeline

__all__ = [
    "CropRect",
    "CropSample",
    "Detection",
    "EmptyTimeline",
    "FrameSplitter",
    "Program",
    "Timeline",
    "compute_crop",
    "crop_filter",
    "iter_frames",
    "synthesize",
    "target_size",
]
