"""Shared fixtures for the facecrop test suite."""

import pytest

from facecrop.crop import CropRect
from facecrop.timeline import Timeline

PNG_SIGNATURE = bytes.fromhex("89504E470D0A1A0A")


@pytest.fixture
def delimiter() -> bytes:
    return PNG_SIGNATURE


@pytest.fixture
def make_timeline():
    """Build a timeline whose samples have the given x offsets."""
    def _make(xs: list[int], width: int = 607, height: int = 1080) -> Timeline:
        timeline = Timeline()
        for x in xs:
            timeline.append(CropRect(x=x, y=0, width=width, height=height))
        return timeline
    return _make
