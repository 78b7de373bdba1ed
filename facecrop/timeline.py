"""Ordered record of per-sample crop decisions."""

from dataclasses import dataclass
from typing import Optional

from facecrop.crop import CropRect


class EmptyTimeline(ValueError):
    """Synthesis was requested on a timeline with no samples."""
    pass


class TimelineSealed(RuntimeError):
    """A sample was appended after synthesis started."""
    pass


@dataclass(frozen=True)
class CropSample:
    """One sampled frame's crop window. Sample ``i`` sits at source frame ``i * interval``."""
    index: int
    crop: CropRect


class Timeline:
    """
    Append-only list of CropSamples, one per sampled frame.

    Sample indices are assigned on append, so the order of appends is the
    order of samples. Once sealed the timeline can no longer grow.
    """

    def __init__(self):
        self._samples: list[CropSample] = []
        self._sealed = False

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self):
        return iter(self._samples)

    @property
    def sealed(self) -> bool:
        return self._sealed

    @property
    def samples(self) -> tuple[CropSample, ...]:
        return tuple(self._samples)

    @property
    def xs(self) -> list[int]:
        return [s.crop.x for s in self._samples]

    def last(self) -> Optional[CropRect]:
        """Most recently appended crop, or None for an empty timeline."""
        return self._samples[-1].crop if self._samples else None

    def append(self, crop: CropRect) -> CropSample:
        if self._sealed:
            raise TimelineSealed(f"cannot append sample {len(self._samples)} to a sealed timeline")
        sample = CropSample(index=len(self._samples), crop=crop)
        self._samples.append(sample)
        return sample

    def seal(self) -> "Timeline":
        self._sealed = True
        return self
