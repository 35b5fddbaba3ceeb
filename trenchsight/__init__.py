"""
TrenchSight package exposing the capture session controller.

The modules are organized under ``trenchsight.capture`` so callers can import
the controller, the trackers and the filename generator directly from this
namespace.
"""

from .capture.controller import CaptureSessionController
from .capture.geo import Coordinate, GeoTracker, distance_meters
from .capture.naming import photo_filename
from .capture.orientation import OrientationTracker
from .capture.readiness import ReadinessMonitor

__all__ = [
    "CaptureSessionController",
    "Coordinate",
    "GeoTracker",
    "OrientationTracker",
    "ReadinessMonitor",
    "distance_meters",
    "photo_filename",
]
