"""
Readiness Monitor

Battery and free-storage health used to admit a new capture session.

Both flags fail open: a missing battery sensor keeps ``battery_low`` False and
a missing storage estimate keeps ``storage_ok`` True.
"""

from __future__ import annotations

from typing import Callable, Optional

from ..core.logger import get_logger
from .sources import SampleSource, StorageEstimate

logger = get_logger("capture.readiness")

DEFAULT_LOW_BATTERY_THRESHOLD = 0.15
DEFAULT_MIN_FREE_BYTES = 100 * 1024 * 1024

StorageProbe = Callable[[], Optional[StorageEstimate]]


class ReadinessMonitor:
    def __init__(
        self,
        battery_source: SampleSource[float] | None = None,
        storage_probe: StorageProbe | None = None,
        *,
        low_battery_threshold: float = DEFAULT_LOW_BATTERY_THRESHOLD,
        min_free_bytes: int = DEFAULT_MIN_FREE_BYTES,
    ) -> None:
        self._battery_source = battery_source
        self._storage_probe = storage_probe
        self.low_battery_threshold = low_battery_threshold
        self.min_free_bytes = min_free_bytes

        self.battery_level: Optional[float] = None
        self.battery_low = False
        self.battery_available = battery_source is not None
        self.free_bytes: Optional[int] = None
        self.storage_ok = True
        self.storage_available = storage_probe is not None

    def start(self) -> None:
        if self._battery_source is not None:
            self._battery_source.start(self.on_battery_level, self.on_battery_error)
        else:
            logger.info("No battery capability; assuming ready")
        self.refresh_storage()

    def stop(self) -> None:
        if self._battery_source is not None:
            self._battery_source.stop()

    def on_battery_level(self, level: float) -> None:
        self.battery_available = True
        self.battery_level = level
        low = level <= self.low_battery_threshold
        if low and not self.battery_low:
            logger.warning("Battery low: %.0f%%", level * 100)
        self.battery_low = low

    def on_battery_error(self, exc: Exception) -> None:
        self.battery_available = False
        self.battery_low = False
        logger.info("Battery level unavailable (%s); assuming ready", exc)

    def refresh_storage(self) -> bool:
        """Query the storage estimate once and update ``storage_ok``."""
        if self._storage_probe is None:
            return self.storage_ok
        try:
            estimate = self._storage_probe()
        except Exception as exc:  # noqa: BLE001 - fail open on any probe failure
            logger.warning("Storage estimate failed (%s); assuming ready", exc)
            estimate = None
        if estimate is None:
            self.storage_available = False
            self.storage_ok = True
            return self.storage_ok

        self.storage_available = True
        self.free_bytes = estimate.free
        self.storage_ok = estimate.free > self.min_free_bytes
        if not self.storage_ok:
            logger.warning(
                "Insufficient storage: %d bytes free, %d required", estimate.free, self.min_free_bytes
            )
        return self.storage_ok


__all__ = [
    "DEFAULT_LOW_BATTERY_THRESHOLD",
    "DEFAULT_MIN_FREE_BYTES",
    "ReadinessMonitor",
    "StorageProbe",
]
