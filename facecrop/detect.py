"""
detect.py – PNG decoding and single-face detection using OpenCV.

DNN SSD (res10_300x300) is used when its model files can be found, with the
Haar frontal-face cascade as fallback. Inference is blocking, so the async
detector runs it in a worker thread.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import cv2
import numpy as np

from facecrop.config import config
from facecrop.crop import Detection

log = logging.getLogger(__name__)

_DNN_PROTO = "deploy.prototxt"
_DNN_MODEL = "res10_300x300_ssd_iter_140000.caffemodel"


class FrameDecodeError(Exception):
    """A frame buffer could not be decoded as an image."""
    pass


def decode_png(frame: bytes) -> np.ndarray:
    """Decode one PNG frame buffer into a BGR image."""
    image = cv2.imdecode(np.frombuffer(frame, dtype=np.uint8), cv2.IMREAD_COLOR)
    if image is None:
        raise FrameDecodeError(f"could not decode {len(frame)}-byte frame")
    return image


def _find_dnn_model(models_dir: Optional[str] = None) -> Optional[tuple[str, str]]:
    """Locate the DNN face detector model files."""
    search_dirs = [
        Path(__file__).parent / "models",
        Path.cwd() / "models",
        Path.home() / ".facecrop" / "models",
    ]
    if models_dir:
        search_dirs.insert(0, Path(models_dir))
    for d in search_dirs:
        proto = d / _DNN_PROTO
        model = d / _DNN_MODEL
        if proto.exists() and model.exists():
            return str(proto), str(model)
    return None


def _best(faces: list[Detection]) -> Optional[Detection]:
    """Most confident face, larger area breaking ties."""
    if not faces:
        return None
    return max(faces, key=lambda f: (f.confidence, f.width * f.height))


class FaceDetector:
    """
    Async single-face detector.

    ``await detector(image)`` returns the most confident face or None.
    """

    def __init__(
        self,
        models_dir: Optional[str] = None,
        confidence_threshold: Optional[float] = None,
    ):
        self.models_dir = models_dir if models_dir is not None else config.MODELS_DIR
        self.confidence_threshold = (
            confidence_threshold if confidence_threshold is not None else config.DNN_CONFIDENCE
        )
        self._net = None
        self._net_searched = False
        self._cascade = None

    def _get_dnn_net(self):
        if self._net is not None or self._net_searched:
            return self._net

        self._net_searched = True
        paths = _find_dnn_model(self.models_dir)
        if paths is None:
            log.info("DNN face model not found; using Haar cascade only")
            return None

        proto, model = paths
        self._net = cv2.dnn.readNetFromCaffe(proto, model)
        self._net.setPreferableBackend(cv2.dnn.DNN_BACKEND_OPENCV)
        self._net.setPreferableTarget(cv2.dnn.DNN_TARGET_CPU)
        log.info("Loaded DNN face detector from %s", Path(model).parent)
        return self._net

    def _get_haar_cascade(self):
        if self._cascade is None:
            cascade_path = cv2.data.haarcascades + "haarcascade_frontalface_default.xml"
            self._cascade = cv2.CascadeClassifier(cascade_path)
        return self._cascade

    def _detect_dnn(self, net, image_bgr: np.ndarray) -> list[Detection]:
        h, w = image_bgr.shape[:2]
        blob = cv2.dnn.blobFromImage(
            cv2.resize(image_bgr, (300, 300)), 1.0, (300, 300), (104.0, 177.0, 123.0),
        )
        net.setInput(blob)
        detections = net.forward()

        faces = []
        for i in range(detections.shape[2]):
            confidence = float(detections[0, 0, i, 2])
            if confidence < self.confidence_threshold:
                continue
            box = detections[0, 0, i, 3:7] * np.array([w, h, w, h])
            x1, y1, x2, y2 = box
            x1, y1 = max(0.0, x1), max(0.0, y1)
            x2, y2 = min(float(w), x2), min(float(h), y2)
            if x2 <= x1 or y2 <= y1:
                continue
            faces.append(Detection(
                x=float(x1), y=float(y1),
                width=float(x2 - x1), height=float(y2 - y1),
                confidence=confidence,
            ))
        return faces

    def _detect_haar(self, image_bgr: np.ndarray) -> list[Detection]:
        gray = cv2.cvtColor(image_bgr, cv2.COLOR_BGR2GRAY)
        rects = self._get_haar_cascade().detectMultiScale(
            gray, scaleFactor=1.1, minNeighbors=5, minSize=(40, 40),
        )
        # Haar gives no score; rank by area through the tie-breaker
        return [
            Detection(x=float(x), y=float(y), width=float(w), height=float(h), confidence=0.6)
            for (x, y, w, h) in rects
        ]

    def detect(self, image_bgr: np.ndarray) -> Optional[Detection]:
        """Blocking single-face detection."""
        net = self._get_dnn_net()
        if net is not None:
            return _best(self._detect_dnn(net, image_bgr))
        return _best(self._detect_haar(image_bgr))

    async def __call__(self, image_bgr: np.ndarray) -> Optional[Detection]:
        return await asyncio.to_thread(self.detect, image_bgr)
