"""Configuration for facecrop."""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from a .env in the working directory
env_path = Path.cwd() / ".env"
load_dotenv(env_path)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def _parse_aspect(value: str) -> tuple[int, int]:
    """Parse an aspect string like "9:16" into (9, 16)."""
    w, _, h = value.partition(":")
    return int(w), int(h)


class Config:
    """facecrop configuration."""

    # Sampling
    INTERVAL: int = int(os.getenv("FACECROP_INTERVAL", "0"))  # 0 = half the source fps
    LERP: bool = _env_bool("FACECROP_LERP", "true")
    HOLD_LAST: bool = _env_bool("FACECROP_HOLD_LAST", "true")

    # Crop window
    ASPECT: str = os.getenv("FACECROP_ASPECT", "9:16")
    CLAMP_TO_FRAME: bool = _env_bool("FACECROP_CLAMP_TO_FRAME", "false")

    # Output
    CODEC: str = os.getenv("FACECROP_CODEC", "")  # "" = ffmpeg default, "copy" = input codec name
    THREADS: int = int(os.getenv("FACECROP_THREADS", str(os.cpu_count() or 1)))

    # Face detection
    MODELS_DIR: str = os.getenv("FACECROP_MODELS_DIR", "")
    DNN_CONFIDENCE: float = float(os.getenv("FACECROP_DNN_CONFIDENCE", "0.5"))

    # Binaries
    FFMPEG_BIN: str = os.getenv("FFMPEG_BIN", "ffmpeg")
    FFPROBE_BIN: str = os.getenv("FFPROBE_BIN", "ffprobe")

    # PNG signature; ffmpeg's image2pipe output is a run of concatenated PNGs
    FRAME_DELIMITER: bytes = bytes.fromhex("89504E470D0A1A0A")
    READ_CHUNK_SIZE: int = 1 << 16

    @classmethod
    def aspect(cls) -> tuple[int, int]:
        return _parse_aspect(cls.ASPECT)

    @classmethod
    def validate(cls) -> list[str]:
        """Validate configuration. Returns list of problems."""
        problems = []
        if cls.INTERVAL < 0:
            problems.append(f"FACECROP_INTERVAL must be >= 0, got {cls.INTERVAL}")
        try:
            w, h = cls.aspect()
            if w <= 0 or h <= 0:
                problems.append(f"FACECROP_ASPECT must be positive, got {cls.ASPECT}")
        except ValueError:
            problems.append(f"FACECROP_ASPECT must look like W:H, got {cls.ASPECT!r}")
        if not 0.0 < cls.DNN_CONFIDENCE <= 1.0:
            problems.append(f"FACECROP_DNN_CONFIDENCE must be in (0, 1], got {cls.DNN_CONFIDENCE}")
        return problems


config = Config()
