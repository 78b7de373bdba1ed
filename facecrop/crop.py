"""Per-sample crop window computation."""

import math
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Detection:
    """A detected face bounding box in source pixels."""
    x: float
    y: float
    width: float
    height: float
    confidence: float = 1.0

    @property
    def center_x(self) -> int:
        return math.floor(self.x + self.width / 2)


@dataclass(frozen=True)
class CropRect:
    """Output crop window in source pixels. Only ``x`` changes during a run."""
    x: int
    y: int
    width: int
    height: int


def target_size(source_height: int, aspect: tuple[int, int] = (9, 16)) -> tuple[int, int]:
    """
    Compute the fixed crop size for a source of the given height.

    The crop keeps the full source height; width follows the aspect ratio,
    rounded down (1080 -> 607 for 9:16).
    """
    aspect_w, aspect_h = aspect
    return source_height * aspect_w // aspect_h, source_height


def default_crop(target_width: int, target_height: int) -> CropRect:
    return CropRect(x=0, y=0, width=target_width, height=target_height)


def compute_crop(
    detection: Optional[Detection],
    target_width: int,
    target_height: int,
    previous: Optional[CropRect] = None,
) -> CropRect:
    """
    Turn one sample's detection into a crop window.

    Without a detection the previous crop is repeated, or the left-aligned
    default is used before the first successful detection. With one, the
    window is centred on the face horizontally.

    The result is not clamped to the source frame; see :func:`clamp_crop`.
    """
    if detection is None:
        return previous if previous is not None else default_crop(target_width, target_height)

    return CropRect(
        x=detection.center_x - target_width // 2,
        y=0,
        width=target_width,
        height=target_height,
    )


def is_out_of_frame(rect: CropRect, source_width: int) -> bool:
    return rect.x < 0 or rect.x + rect.width > source_width


def clamp_crop(rect: CropRect, source_width: int) -> CropRect:
    """Pin ``rect.x`` so the window lies inside a source of ``source_width``."""
    max_x = max(0, source_width - rect.width)
    x = max(0, min(rect.x, max_x))
    if x == rect.x:
        return rect
    return CropRect(x=x, y=rect.y, width=rect.width, height=rect.height)
