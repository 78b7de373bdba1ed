import asyncio

import cv2
import numpy as np
import pytest

from facecrop import detect
from facecrop.crop import Detection
from facecrop.detect import FaceDetector, FrameDecodeError, _best, decode_png


def _png(image: np.ndarray) -> bytes:
    ok, encoded = cv2.imencode(".png", image)
    assert ok
    return encoded.tobytes()


def test_decode_png_returns_bgr_image() -> None:
    image = np.zeros((36, 64, 3), dtype=np.uint8)
    image[:, :, 2] = 255

    decoded = decode_png(_png(image))

    assert decoded.shape == (36, 64, 3)
    assert np.array_equal(decoded, image)


def test_decode_png_starts_with_frame_delimiter() -> None:
    from facecrop.config import config

    assert _png(np.zeros((4, 4, 3), dtype=np.uint8)).startswith(config.FRAME_DELIMITER)


def test_decode_garbage_raises() -> None:
    with pytest.raises(FrameDecodeError):
        decode_png(b"\x89PNG\r\n\x1a\nnot really a png")


def test_best_prefers_confidence_then_area() -> None:
    small_sure = Detection(0, 0, 10, 10, confidence=0.9)
    big_unsure = Detection(0, 0, 90, 90, confidence=0.4)
    big_sure = Detection(0, 0, 50, 50, confidence=0.9)

    assert _best([]) is None
    assert _best([small_sure, big_unsure]) is small_sure
    assert _best([small_sure, big_sure]) is big_sure


def test_haar_fallback_on_blank_frame(monkeypatch) -> None:
    monkeypatch.setattr(detect, "_find_dnn_model", lambda models_dir=None: None)
    detector = FaceDetector()

    assert detector.detect(np.zeros((240, 320, 3), dtype=np.uint8)) is None


def test_async_call_runs_blocking_detect(monkeypatch) -> None:
    face = Detection(10, 20, 30, 40)
    detector = FaceDetector(models_dir="", confidence_threshold=0.5)
    monkeypatch.setattr(detector, "detect", lambda image: face)

    assert asyncio.run(detector(np.zeros((2, 2, 3), dtype=np.uint8))) is face
