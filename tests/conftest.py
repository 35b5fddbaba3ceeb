from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from unittest.mock import Mock

import numpy as np
import pytest


REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from trenchsight.capture.controller import CaptureSessionController  # noqa: E402
from trenchsight.capture.geo import Coordinate, GeoFix, GeoTracker  # noqa: E402
from trenchsight.capture.media import FrameEncoder, ZoomRange  # noqa: E402
from trenchsight.capture.orientation import OrientationSample, OrientationTracker  # noqa: E402
from trenchsight.capture.readiness import ReadinessMonitor, StorageProbe  # noqa: E402
from trenchsight.capture.session import SessionResult, UploadResult  # noqa: E402
from trenchsight.capture.sources import PushSource  # noqa: E402


class FakeDevice:
    def __init__(self, zoom_range: Optional[ZoomRange] = None) -> None:
        self.zoom_range = zoom_range
        self.applied: list[float] = []
        self.release_count = 0

    def apply_zoom(self, value: float) -> float:
        self.applied.append(value)
        return value

    def grab_frame(self):
        return np.zeros((8, 8, 3), dtype=np.uint8)

    def release(self) -> None:
        self.release_count += 1


@dataclass
class Harness:
    controller: CaptureSessionController
    location: PushSource
    orientation: PushSource
    readiness: ReadinessMonitor
    media: Mock
    network: Mock
    device: FakeDevice

    def fix(self, lat: float, lng: float) -> None:
        self.location.push(GeoFix(Coordinate(lat, lng)))

    def tilt(self, pitch: Optional[float], heading: Optional[float] = 90.0) -> None:
        self.orientation.push(OrientationSample(heading=heading, pitch=pitch))


@pytest.fixture
def make_harness():
    def _make(
        *,
        reset_on_restart: bool = True,
        zoom_range: Optional[ZoomRange] = None,
        storage_probe: Optional[StorageProbe] = None,
    ) -> Harness:
        location = PushSource("location")
        orientation = PushSource("orientation")
        readiness = ReadinessMonitor(storage_probe=storage_probe)
        device = FakeDevice(zoom_range)

        media = Mock()
        media.acquire.return_value = device

        network = Mock()
        network.create_session.return_value = SessionResult(ok=True, session_id="sess-1")
        network.upload_photo.side_effect = lambda record: UploadResult(
            ok=True, sequence_number=record.sequence_number, filename=record.filename, status_code=201
        )

        controller = CaptureSessionController(
            GeoTracker(location),
            OrientationTracker(orientation),
            readiness,
            media,
            network,
            FrameEncoder(quality=80),
            device_descriptor="pytest-device",
            reset_on_restart=reset_on_restart,
            today=lambda: "2024-05-01",
        )
        controller.start_tracking()
        controller.set_site_name("Trench Alpha!")
        return Harness(controller, location, orientation, readiness, media, network, device)

    return _make
