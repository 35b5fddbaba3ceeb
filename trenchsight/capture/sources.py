"""
Observable Sensor Sources

Uniform start/stop + latest-value contract wrapped around every continuous
sensor stream the capture controller consumes (position, orientation,
battery). Platform specific subscription APIs live behind this interface.

Implementations:
    - PushSource:    samples are pushed in by a host adapter (operator client,
                     test harness)
    - PollingSource: a probe is polled on the asyncio loop and only changes
                     are emitted, emulating a level-change notification
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable, Generic, Optional, Protocol, TypeVar

import psutil

from ..core.logger import get_logger

logger = get_logger("capture.sources")

T = TypeVar("T")

SampleCallback = Callable[[T], None]
ErrorCallback = Callable[[Exception], None]


class SourceUnavailableError(RuntimeError):
    """Raised through the error callback when a capability is missing or denied."""


class SampleSource(Protocol[T]):
    """Continuous sensor stream with an explicit lifecycle."""

    @property
    def latest(self) -> Optional[T]:
        ...

    @property
    def running(self) -> bool:
        ...

    def start(self, on_sample: SampleCallback, on_error: ErrorCallback | None = None) -> None:
        ...

    def stop(self) -> None:
        ...


class PushSource(Generic[T]):
    """Source fed by an external adapter through :meth:`push` and :meth:`fail`."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._latest: Optional[T] = None
        self._on_sample: SampleCallback | None = None
        self._on_error: ErrorCallback | None = None

    @property
    def latest(self) -> Optional[T]:
        return self._latest

    @property
    def running(self) -> bool:
        return self._on_sample is not None

    def start(self, on_sample: SampleCallback, on_error: ErrorCallback | None = None) -> None:
        self._on_sample = on_sample
        self._on_error = on_error
        logger.debug("Source %s started", self.name)

    def stop(self) -> None:
        self._on_sample = None
        self._on_error = None
        logger.debug("Source %s stopped", self.name)

    def push(self, sample: T) -> None:
        self._latest = sample
        if self._on_sample is not None:
            self._on_sample(sample)

    def fail(self, exc: Exception) -> None:
        logger.warning("Source %s reported an error: %s", self.name, exc)
        if self._on_error is not None:
            self._on_error(exc)


class PollingSource(Generic[T]):
    """Polls ``probe`` every ``interval_s`` seconds and emits on change.

    The first reading is emitted synchronously at :meth:`start`. A probe that
    returns ``None`` marks the capability as unsupported; the error callback
    fires once and polling ends.
    """

    def __init__(self, name: str, probe: Callable[[], Optional[T]], interval_s: float) -> None:
        self.name = name
        self._probe = probe
        self._interval_s = interval_s
        self._latest: Optional[T] = None
        self._task: asyncio.Task | None = None
        self._on_sample: SampleCallback | None = None
        self._on_error: ErrorCallback | None = None

    @property
    def latest(self) -> Optional[T]:
        return self._latest

    @property
    def running(self) -> bool:
        return self._on_sample is not None

    def start(self, on_sample: SampleCallback, on_error: ErrorCallback | None = None) -> None:
        self._on_sample = on_sample
        self._on_error = on_error
        if not self._poll_once():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("Source %s started outside an event loop; single reading only", self.name)
            return
        self._task = loop.create_task(self._run(), name=f"poll-{self.name}")

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self._on_sample = None
        self._on_error = None

    async def _run(self) -> None:
        while self._on_sample is not None:
            await asyncio.sleep(self._interval_s)
            if not self._poll_once():
                break

    def _poll_once(self) -> bool:
        try:
            value = self._probe()
        except Exception as exc:  # noqa: BLE001 - platform probes fail in many ways
            self._report(exc)
            return False
        if value is None:
            self._report(SourceUnavailableError(f"{self.name} is not supported on this device"))
            return False
        if value != self._latest:
            self._latest = value
            if self._on_sample is not None:
                self._on_sample(value)
        return True

    def _report(self, exc: Exception) -> None:
        logger.warning("Source %s unavailable: %s", self.name, exc)
        on_error = self._on_error
        self._on_sample = None
        self._on_error = None
        if on_error is not None:
            on_error(exc)


@dataclass(frozen=True)
class StorageEstimate:
    """Quota/usage pair in bytes, like a storage manager estimate."""

    quota: int
    usage: int

    @property
    def free(self) -> int:
        return self.quota - self.usage


def psutil_battery_level() -> Optional[float]:
    """Battery charge in [0, 1], or ``None`` when the host has no battery sensor."""
    battery = psutil.sensors_battery()
    if battery is None:
        return None
    return float(battery.percent) / 100.0


def psutil_storage_estimate(path: str = ".") -> Optional[StorageEstimate]:
    """Free-space estimate for the filesystem holding ``path``."""
    try:
        usage = psutil.disk_usage(path)
    except OSError as exc:
        logger.warning("Storage estimate for %s failed: %s", path, exc)
        return None
    # quota excludes blocks reserved for root so that ``free`` matches psutil
    return StorageEstimate(quota=int(usage.used + usage.free), usage=int(usage.used))


__all__ = [
    "ErrorCallback",
    "PollingSource",
    "PushSource",
    "SampleCallback",
    "SampleSource",
    "SourceUnavailableError",
    "StorageEstimate",
    "psutil_battery_level",
    "psutil_storage_estimate",
]
