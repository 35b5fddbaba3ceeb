"""
Geo Tracker

Follows the device position along the trench line and keeps the cumulative
distance travelled from the session anchor (the first fix observed).
"""

from __future__ import annotations

from dataclasses import dataclass
from math import asin, cos, radians, sin, sqrt
from typing import Optional

from ..core.logger import get_logger
from .sources import SampleSource

logger = get_logger("capture.geo")

EARTH_RADIUS_M = 6371000.0


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class GeoFix:
    """A position sample.

    ``timestamp_ms`` is epoch milliseconds on the clock of the device that took
    the fix. It is only compared with other fixes from the same stream.
    """

    coordinate: Coordinate
    timestamp_ms: Optional[int] = None


@dataclass(frozen=True)
class GeoStreamOptions:
    high_accuracy: bool = True
    maximum_age_ms: int = 1000


def distance_meters(a: Optional[Coordinate], b: Optional[Coordinate]) -> float:
    """Great-circle (haversine) distance in metres; 0 when either end is unknown."""
    if a is None or b is None:
        return 0.0
    dlat = radians(b.latitude - a.latitude)
    dlon = radians(b.longitude - a.longitude)
    lat1 = radians(a.latitude)
    lat2 = radians(b.latitude)
    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_M * asin(sqrt(h))


class GeoTracker:
    """Keeps the latest coordinate, the anchor, and the distance from it.

    Stream errors (denied permission, no receiver) leave the tracker in a
    ``available = False`` state; no exception escapes the callbacks.
    """

    def __init__(
        self,
        source: SampleSource[GeoFix],
        options: GeoStreamOptions | None = None,
    ) -> None:
        self._source = source
        self.options = options or GeoStreamOptions()
        self.coordinate: Optional[Coordinate] = None
        self.anchor: Optional[Coordinate] = None
        self.distance_m: float = 0.0
        self.available = True
        self.last_error: Optional[str] = None
        self._newest_fix_ms: Optional[int] = None

    def start(self) -> None:
        self.available = True
        self.last_error = None
        self._newest_fix_ms = None
        self._source.start(self.on_fix, self.on_error)
        logger.info(
            "Position tracking started (high_accuracy=%s, maximum_age_ms=%d)",
            self.options.high_accuracy,
            self.options.maximum_age_ms,
        )

    def stop(self) -> None:
        self._source.stop()

    def on_fix(self, fix: GeoFix) -> None:
        if self._is_stale(fix):
            logger.debug("Dropping stale fix %s", fix)
            return
        self.available = True
        self.coordinate = fix.coordinate
        if self.anchor is None:
            self.anchor = fix.coordinate
            logger.info(
                "Anchor set at %.6f, %.6f", fix.coordinate.latitude, fix.coordinate.longitude
            )
            return
        self.distance_m = distance_meters(self.anchor, fix.coordinate)

    def on_error(self, exc: Exception) -> None:
        self.available = False
        self.last_error = str(exc)
        self._source.stop()
        logger.warning("Position unavailable: %s", exc)

    def reset_anchor(self) -> None:
        """Re-anchor at the current coordinate, or at the next fix if none is known yet."""
        self.anchor = self.coordinate
        self.distance_m = 0.0

    def _is_stale(self, fix: GeoFix) -> bool:
        # Age is measured against the newest fix of the stream, never the local clock
        if fix.timestamp_ms is None:
            return False
        if self._newest_fix_ms is None or fix.timestamp_ms > self._newest_fix_ms:
            self._newest_fix_ms = fix.timestamp_ms
            return False
        return self._newest_fix_ms - fix.timestamp_ms > self.options.maximum_age_ms


__all__ = [
    "Coordinate",
    "EARTH_RADIUS_M",
    "GeoFix",
    "GeoStreamOptions",
    "GeoTracker",
    "distance_meters",
]
