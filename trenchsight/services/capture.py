"""
Capture Service Layer

Process-wide wrapper around :class:`CaptureSessionController` so the FastAPI
application shares one controller, one camera handle and one set of sensor
subscriptions across requests.
"""

from __future__ import annotations

import functools
from typing import Optional

from ..capture.controller import CaptureSessionController
from ..capture.geo import Coordinate, GeoFix, GeoStreamOptions, GeoTracker
from ..capture.media import FrameEncoder, OpenCVMediaCapture
from ..capture.orientation import OrientationSample, OrientationTracker
from ..capture.readiness import ReadinessMonitor
from ..capture.sources import PollingSource, PushSource, psutil_battery_level, psutil_storage_estimate
from ..core.config import settings
from ..core.logger import get_logger
from .backend import BackendClient

logger = get_logger("capture_service")


class CaptureService:
    """Lazy-initialized controller wrapper for API usage.

    Position and orientation arrive from the operator's handset through the
    API and are pushed into the tracker sources here.
    """

    def __init__(self) -> None:
        self.location_source: PushSource[GeoFix] = PushSource("location")
        self.orientation_source: PushSource[OrientationSample] = PushSource("orientation")
        self._controller: CaptureSessionController | None = None

    @property
    def controller(self) -> CaptureSessionController:
        if self._controller is None:
            logger.info("Initializing CaptureSessionController for API service...")
            self._controller = self.build_controller()
            logger.info("CaptureSessionController ready.")
        return self._controller

    def build_controller(self) -> CaptureSessionController:
        geo = GeoTracker(
            self.location_source,
            GeoStreamOptions(
                high_accuracy=settings.GEO_HIGH_ACCURACY,
                maximum_age_ms=settings.GEO_MAX_SAMPLE_AGE_MS,
            ),
        )
        orientation = OrientationTracker(self.orientation_source, tolerance_deg=settings.ANGLE_TOLERANCE_DEG)
        readiness = ReadinessMonitor(
            PollingSource("battery", psutil_battery_level, settings.BATTERY_POLL_INTERVAL_S),
            functools.partial(psutil_storage_estimate, settings.STORAGE_PATH),
            low_battery_threshold=settings.LOW_BATTERY_THRESHOLD,
            min_free_bytes=settings.MIN_FREE_STORAGE_BYTES,
        )
        return CaptureSessionController(
            geo,
            orientation,
            readiness,
            OpenCVMediaCapture(settings.camera_source, warmup_frames=settings.CAMERA_WARMUP_FRAMES),
            BackendClient(settings.BACKEND_URL, timeout_s=settings.BACKEND_TIMEOUT_S),
            FrameEncoder(quality=settings.JPEG_QUALITY),
            device_descriptor=settings.device_descriptor,
            reset_on_restart=settings.RESET_ON_RESTART,
        )

    def startup(self) -> None:
        self.controller.start_tracking()

    def shutdown(self) -> None:
        if self._controller is None:
            return
        self._controller.stop()
        self._controller.stop_tracking()

    def push_location(self, latitude: float, longitude: float, timestamp_ms: Optional[int] = None) -> None:
        self.location_source.push(GeoFix(Coordinate(latitude, longitude), timestamp_ms))

    def push_orientation(self, heading: Optional[float], pitch: Optional[float]) -> None:
        self.orientation_source.push(OrientationSample(heading=heading, pitch=pitch))

    def report_location_error(self, message: str) -> None:
        self.location_source.fail(RuntimeError(message))

    def report_orientation_error(self, message: str) -> None:
        self.orientation_source.fail(RuntimeError(message))


capture_service = CaptureService()
