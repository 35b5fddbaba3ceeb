"""
Orientation Tracker

Latest-wins view of device heading and pitch, with a pitch baseline captured
once per session. Deviation from the baseline beyond the tolerance raises the
angle warning that blocks capture.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.logger import get_logger
from .sources import SampleSource

logger = get_logger("capture.orientation")

DEFAULT_TOLERANCE_DEG = 5.0


@dataclass(frozen=True)
class OrientationSample:
    """Heading in [0, 360) and pitch in degrees; ``None`` means unknown, never 0."""

    heading: Optional[float] = None
    pitch: Optional[float] = None


class OrientationTracker:
    def __init__(
        self,
        source: SampleSource[OrientationSample],
        tolerance_deg: float = DEFAULT_TOLERANCE_DEG,
    ) -> None:
        self._source = source
        self.tolerance_deg = tolerance_deg
        self.heading: Optional[float] = None
        self.pitch: Optional[float] = None
        self.baseline: Optional[float] = None
        self.angle_warning = False
        self.available = True
        self._armed = False

    @property
    def deviation(self) -> Optional[float]:
        if self.baseline is None or self.pitch is None:
            return None
        return abs(self.pitch - self.baseline)

    @property
    def armed(self) -> bool:
        return self._armed

    def start(self) -> None:
        self.available = True
        self._source.start(self.on_sample, self.on_error)

    def stop(self) -> None:
        self._source.stop()

    def arm_baseline(self) -> None:
        """Take the pitch of the next sample as the session baseline."""
        self.baseline = None
        self.angle_warning = False
        self._armed = True

    def clear_baseline(self) -> None:
        self.baseline = None
        self.angle_warning = False
        self._armed = False

    def on_sample(self, sample: OrientationSample) -> None:
        self.available = True
        self.heading = sample.heading
        self.pitch = sample.pitch

        if self._armed and self.baseline is None:
            if sample.pitch is None:
                return
            self.baseline = sample.pitch
            self._armed = False
            logger.info("Angle baseline set to %.1f deg", sample.pitch)

        if self.baseline is not None:
            deviation = self.deviation
            # unknown pitch cannot prove the device is still level
            warning = deviation is None or deviation > self.tolerance_deg
            if warning != self.angle_warning:
                logger.debug("Angle warning %s (deviation=%s)", warning, deviation)
            self.angle_warning = warning

    def on_error(self, exc: Exception) -> None:
        self.available = False
        logger.warning("Orientation unavailable: %s", exc)


__all__ = ["DEFAULT_TOLERANCE_DEG", "OrientationSample", "OrientationTracker"]
