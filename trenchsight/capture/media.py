"""
Media Capture Layer

Camera acquisition and still-frame encoding used by the capture controller.

    - MediaCapture / MediaDevice: acquisition contract, exclusive handle
    - OpenCVMediaCapture:         cv2.VideoCapture backed implementation
    - FrameEncoder:               JPEG encoding through Pillow
    - resolve_zoom:               maps the operator zoom mode onto a device range
"""

from __future__ import annotations

import io
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Protocol

import cv2
import numpy as np
from PIL import Image

from ..core.logger import get_logger

logger = get_logger("capture.media")


class MediaCaptureError(RuntimeError):
    """Camera could not be opened, read or configured."""


class ZoomMode(str, Enum):
    WIDE = "0.5x"
    NORMAL = "1x"


@dataclass(frozen=True)
class ZoomRange:
    min: float
    max: float


def resolve_zoom(mode: ZoomMode, zoom_range: Optional[ZoomRange]) -> float:
    """Target zoom for ``mode``: the widest the device allows for 0.5x, 1.0 otherwise."""
    if zoom_range is None:
        return 1.0
    desired = zoom_range.min if mode is ZoomMode.WIDE else 1.0
    return min(zoom_range.max, max(zoom_range.min, desired))


class MediaDevice(Protocol):
    """An acquired camera. Owned by one controller until released."""

    @property
    def zoom_range(self) -> Optional[ZoomRange]:
        ...

    def apply_zoom(self, value: float) -> float:
        ...

    def grab_frame(self) -> Any:
        ...

    def release(self) -> None:
        ...


class MediaCapture(Protocol):
    def acquire(self) -> MediaDevice:
        """Open the camera. Raises MediaCaptureError when unavailable or denied."""


class FrameEncoder:
    """Encodes a frame (BGR ndarray from OpenCV or a PIL image) to JPEG bytes."""

    def __init__(self, quality: int = 90) -> None:
        self.quality = quality

    def encode(self, frame: Any) -> bytes:
        if isinstance(frame, Image.Image):
            image = frame
        elif isinstance(frame, np.ndarray):
            if frame.ndim == 3 and frame.shape[2] == 3:
                frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
            image = Image.fromarray(frame)
        else:
            raise TypeError(f"Unsupported frame type: {type(frame).__name__}")

        if image.mode not in ("RGB", "L"):
            image = image.convert("RGB")
        buffer = io.BytesIO()
        image.save(buffer, format="JPEG", quality=self.quality)
        return buffer.getvalue()


class OpenCVDevice:
    """Exclusive handle on an opened ``cv2.VideoCapture``.

    Reads, property writes and release are serialized on one lock because the
    controller reads frames from a worker thread while zoom changes and stop
    arrive on the event loop.
    """

    def __init__(self, capture: cv2.VideoCapture) -> None:
        self._capture = capture
        self._lock = threading.Lock()
        self._released = False
        self._zoom_range = self._probe_zoom_range()

    @property
    def zoom_range(self) -> Optional[ZoomRange]:
        return self._zoom_range

    def _probe_zoom_range(self) -> Optional[ZoomRange]:
        # OpenCV has no capability query; a backend without zoom reports <= 0 or refuses set()
        current = self._capture.get(cv2.CAP_PROP_ZOOM)
        if current is None or current <= 0:
            return None
        return ZoomRange(min=min(current, 1.0), max=max(current, 1.0))

    def apply_zoom(self, value: float) -> float:
        if self._zoom_range is None:
            return 1.0
        with self._lock:
            if self._released:
                raise MediaCaptureError("Camera already released")
            if not self._capture.set(cv2.CAP_PROP_ZOOM, value):
                logger.warning("Camera refused zoom %.2f", value)
                return float(self._capture.get(cv2.CAP_PROP_ZOOM) or 1.0)
            return value

    def grab_frame(self) -> np.ndarray:
        with self._lock:
            if self._released:
                raise MediaCaptureError("Camera already released")
            ok, frame = self._capture.read()
        if not ok or frame is None:
            raise MediaCaptureError("Failed to read a frame from the camera")
        return frame

    def release(self) -> None:
        with self._lock:
            if self._released:
                return
            self._released = True
            self._capture.release()


class OpenCVMediaCapture:
    """Opens ``source`` (device index or stream URL) with cv2.VideoCapture."""

    def __init__(self, source: int | str = 0, warmup_frames: int = 5) -> None:
        self.source = source
        self.warmup_frames = warmup_frames

    def acquire(self) -> OpenCVDevice:
        capture = cv2.VideoCapture(self.source)
        if not capture.isOpened():
            capture.release()
            raise MediaCaptureError(f"Camera {self.source!r} could not be opened")
        # Keep buffer tiny so a grab returns the live frame
        capture.set(cv2.CAP_PROP_BUFFERSIZE, 1)

        # Throw away initial frames to reach a steady exposure
        for _ in range(self.warmup_frames):
            capture.read()

        logger.info("Camera %r acquired", self.source)
        return OpenCVDevice(capture)


__all__ = [
    "FrameEncoder",
    "MediaCapture",
    "MediaCaptureError",
    "MediaDevice",
    "OpenCVDevice",
    "OpenCVMediaCapture",
    "ZoomMode",
    "ZoomRange",
    "resolve_zoom",
]
