"""
Capture Session Controller

Fuses the geo, orientation and readiness trackers into one session state,
gates operator intents, and drives capture -> encode -> upload.

Scheduling model:
    All sensor callbacks and intents run on one asyncio event loop. Blocking
    work (camera acquisition, frame grab, JPEG encoding, HTTP calls) runs in
    worker threads through ``asyncio.to_thread`` and is awaited, so other
    events may interleave at exactly those points. Controller state is only
    mutated on the loop.

Ordering:
    A capture trigger reserves its sequence number before its first await, so
    rapid triggers get consecutive numbers in trigger order. Uploads run as
    independent tasks and may finish out of order; they are never retried and
    stopping a session does not cancel them.
"""

from __future__ import annotations

import asyncio
import inspect
from collections import Counter
from dataclasses import dataclass
from datetime import date as Date
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional, Union

from ..core.logger import get_logger
from .geo import Coordinate, GeoTracker
from .media import FrameEncoder, MediaCapture, MediaDevice, ZoomMode, resolve_zoom
from .naming import photo_filename
from .orientation import OrientationTracker
from .readiness import ReadinessMonitor
from .session import (
    CaptureRefusal,
    CaptureResult,
    NetworkClient,
    PhotoRecord,
    SessionRequest,
    SessionState,
    SessionStatus,
    StartRefusal,
    StartResult,
    UploadResult,
)

logger = get_logger("capture.controller")

Confirmation = Callable[[str], Union[bool, Awaitable[bool]]]

LOW_BATTERY_PROMPT = "Battery is low. Continue anyway?"


def utc_today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


@dataclass(frozen=True)
class ControllerSnapshot:
    """Read-only view rendered by the presentation layer."""

    status: SessionStatus
    site_name: str
    date: str
    session_id: Optional[str]
    sequence_number: int
    coordinate: Optional[Coordinate]
    anchor: Optional[Coordinate]
    distance_m: float
    position_available: bool
    heading: Optional[float]
    pitch: Optional[float]
    angle_baseline: Optional[float]
    angle_warning: bool
    orientation_available: bool
    battery_low: bool
    battery_level: Optional[float]
    battery_available: bool
    storage_ok: bool
    storage_available: bool
    zoom_mode: ZoomMode
    zoom: float
    capture_permitted: bool
    uploads_in_flight: int
    failed_sequences: List[int]
    last_error: Optional[str]


class CaptureSessionController:
    def __init__(
        self,
        geo: GeoTracker,
        orientation: OrientationTracker,
        readiness: ReadinessMonitor,
        media: MediaCapture,
        network: NetworkClient,
        encoder: FrameEncoder | None = None,
        *,
        device_descriptor: str = "unknown",
        reset_on_restart: bool = True,
        today: Callable[[], str] = utc_today,
    ) -> None:
        self.geo = geo
        self.orientation = orientation
        self.readiness = readiness
        self.media = media
        self.network = network
        self.encoder = encoder or FrameEncoder()
        self.device_descriptor = device_descriptor
        self.reset_on_restart = reset_on_restart

        self.session = SessionState(date=today())
        self.zoom_mode = ZoomMode.NORMAL
        self.zoom = 1.0
        self.last_error: Optional[str] = None

        self._phase = SessionStatus.IDLE
        self._device: Optional[MediaDevice] = None
        self._start_attempt = 0
        # uploads in flight per session id
        self._in_flight: Counter[str] = Counter()
        self._uploads: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Lifecycle of the sensor subscriptions
    # ------------------------------------------------------------------
    def start_tracking(self) -> None:
        self.geo.start()
        self.orientation.start()
        self.readiness.start()
        logger.info("Sensor tracking started")

    def stop_tracking(self) -> None:
        self.geo.stop()
        self.orientation.stop()
        self.readiness.stop()
        logger.info("Sensor tracking stopped")

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------
    @property
    def status(self) -> SessionStatus:
        if self._phase is SessionStatus.ACTIVE and self.uploads_in_flight:
            return SessionStatus.CAPTURING
        return self._phase

    @property
    def uploads_in_flight(self) -> int:
        """Uploads still running for the current session; older sessions' uploads are not counted."""
        return self._in_flight[self.session.session_id]

    @property
    def device_held(self) -> bool:
        return self._device is not None

    @property
    def capture_permitted(self) -> bool:
        return self._capture_refusal() is None

    def snapshot(self) -> ControllerSnapshot:
        return ControllerSnapshot(
            status=self.status,
            site_name=self.session.site_name,
            date=self.session.date,
            session_id=self.session.session_id,
            sequence_number=self.session.sequence_number,
            coordinate=self.geo.coordinate,
            anchor=self.geo.anchor,
            distance_m=self.geo.distance_m,
            position_available=self.geo.available,
            heading=self.orientation.heading,
            pitch=self.orientation.pitch,
            angle_baseline=self.orientation.baseline,
            angle_warning=self.orientation.angle_warning,
            orientation_available=self.orientation.available,
            battery_low=self.readiness.battery_low,
            battery_level=self.readiness.battery_level,
            battery_available=self.readiness.battery_available,
            storage_ok=self.readiness.storage_ok,
            storage_available=self.readiness.storage_available,
            zoom_mode=self.zoom_mode,
            zoom=self.zoom,
            capture_permitted=self.capture_permitted,
            uploads_in_flight=self.uploads_in_flight,
            failed_sequences=list(self.session.failed_sequences),
            last_error=self.last_error,
        )

    # ------------------------------------------------------------------
    # Operator inputs
    # ------------------------------------------------------------------
    def set_site_name(self, site_name: str) -> None:
        self.session.site_name = site_name

    def set_date(self, value: str | Date) -> None:
        """Accepts an ISO calendar date; raises ValueError otherwise."""
        if isinstance(value, Date):
            self.session.date = value.isoformat()
            return
        self.session.date = Date.fromisoformat(value).isoformat()

    def set_zoom_mode(self, mode: ZoomMode | str) -> None:
        self.zoom_mode = ZoomMode(mode)
        if self._device is not None:
            self._apply_zoom(self._device)

    # ------------------------------------------------------------------
    # Start
    # ------------------------------------------------------------------
    async def start(self, confirm: Confirmation | None = None) -> StartResult:
        """Idle/Stopped -> Starting -> Active.

        ``confirm`` is asked when the battery is low; without it a low battery
        declines the start. A ``stop()`` or a newer start issued while this one
        is suspended supersedes it; a superseded start releases whatever camera
        it acquired and reports ``invalid_state``.
        """
        if self._phase in (SessionStatus.STARTING, SessionStatus.ACTIVE):
            return self._refuse_start(StartRefusal.INVALID_STATE, f"Session is already {self._phase.value}")

        # Claimed before the first await
        previous = self._phase
        self._start_attempt += 1
        attempt = self._start_attempt
        self._phase = SessionStatus.STARTING
        try:
            return await self._run_start(attempt, previous, confirm)
        except BaseException:
            if self._owns_start(attempt):
                self._phase = previous
            raise

    async def _run_start(
        self, attempt: int, previous: SessionStatus, confirm: Confirmation | None
    ) -> StartResult:
        storage_ok = await asyncio.to_thread(self.readiness.refresh_storage)
        if not self._owns_start(attempt):
            return self._superseded_start(attempt)
        if not storage_ok:
            return self._fail_start(
                previous, StartRefusal.STORAGE_INSUFFICIENT, "Not enough free storage on the device"
            )

        if self.readiness.battery_low:
            confirmed = False
            if confirm is not None:
                answer = confirm(LOW_BATTERY_PROMPT)
                if inspect.isawaitable(answer):
                    answer = await answer
                confirmed = bool(answer)
            if not self._owns_start(attempt):
                return self._superseded_start(attempt)
            if not confirmed:
                return self._fail_start(previous, StartRefusal.BATTERY_DECLINED, "Start cancelled: battery low")
            logger.warning("Starting with low battery after operator confirmation")

        site_name = self.session.site_name.strip()
        if not site_name:
            return self._fail_start(previous, StartRefusal.MISSING_SITE_NAME, "Site name is required")
        start = self.geo.coordinate
        if start is None:
            return self._fail_start(previous, StartRefusal.POSITION_UNAVAILABLE, "Current position is required")

        self.last_error = None
        self._begin_session()
        logger.info("Starting session for site %r on %s", site_name, self.session.date)

        # Owned by this attempt until committed; released on every other exit
        device: Optional[MediaDevice] = None
        try:
            try:
                device = await asyncio.to_thread(self.media.acquire)
            except Exception as exc:  # noqa: BLE001 - any camera failure aborts the start
                logger.error("Camera acquisition failed: %s", exc)
                if not self._owns_start(attempt):
                    return self._superseded_start(attempt)
                return self._fail_start(
                    SessionStatus.IDLE, StartRefusal.DEVICE_UNAVAILABLE, f"Camera could not be opened: {exc}"
                )
            if not self._owns_start(attempt):
                return self._superseded_start(attempt)

            request = SessionRequest(
                site_name=self.session.site_name,
                date=self.session.date,
                start=start,
                device=self.device_descriptor,
            )
            try:
                result = await asyncio.to_thread(self.network.create_session, request)
            except Exception as exc:  # noqa: BLE001 - clients should not raise, but never let it escape
                logger.exception("Session creation raised: %s", exc)
                result = None
            if not self._owns_start(attempt):
                return self._superseded_start(attempt)

            if result is None or not result.ok or not result.session_id:
                error = result.error if result is not None and result.error else "no session id returned"
                return self._fail_start(
                    SessionStatus.IDLE,
                    StartRefusal.SESSION_CREATION_FAILED,
                    f"Session could not be created: {error}",
                )

            self._device, device = device, None
            self._apply_zoom(self._device)
            self.session.session_id = result.session_id
            self._phase = SessionStatus.ACTIVE
            self.orientation.arm_baseline()
            logger.info("Session %s active", result.session_id)
            return StartResult(started=True, session_id=result.session_id)
        finally:
            if device is not None:
                self._release(device)

    def _owns_start(self, attempt: int) -> bool:
        return attempt == self._start_attempt and self._phase is SessionStatus.STARTING

    def _fail_start(self, phase: SessionStatus, refusal: StartRefusal, detail: str) -> StartResult:
        self._phase = phase
        return self._refuse_start(refusal, detail)

    def _superseded_start(self, attempt: int) -> StartResult:
        # state belongs to whoever superseded this attempt; only report
        logger.warning("Start attempt %d was superseded by a stop or a newer start", attempt)
        return StartResult(started=False, refusal=StartRefusal.INVALID_STATE, detail="Start was cancelled")

    def _begin_session(self) -> None:
        keep_progress = not self.reset_on_restart
        self.session.reset(keep_progress=keep_progress)
        if not keep_progress:
            self.geo.reset_anchor()
        if self.session.start_anchor is None:
            self.session.start_anchor = self.geo.anchor
        self.orientation.clear_baseline()

    def _refuse_start(self, refusal: StartRefusal, detail: str) -> StartResult:
        logger.warning("Start refused (%s): %s", refusal.value, detail)
        self.last_error = detail
        return StartResult(started=False, refusal=refusal, detail=detail)

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------
    def _capture_refusal(self) -> Optional[tuple[CaptureRefusal, str]]:
        if self._phase is not SessionStatus.ACTIVE or self.session.session_id is None:
            return CaptureRefusal.NOT_ACTIVE, "No active session"
        if self.orientation.baseline is None:
            return CaptureRefusal.BASELINE_UNSET, "Waiting for the angle baseline"
        if self.orientation.angle_warning:
            return CaptureRefusal.ANGLE_UNSTABLE, "Device tilt is outside the tolerance"
        if self.geo.coordinate is None:
            return CaptureRefusal.POSITION_UNAVAILABLE, "Current position is unknown"
        return None

    async def capture(self) -> CaptureResult:
        """Active -> Capturing -> Active. Returns once the frame is encoded.

        The upload keeps running in the background; await ``result.upload``
        (or :meth:`drain`) for its outcome.
        """
        refusal = self._capture_refusal()
        if refusal is not None:
            reason, detail = refusal
            logger.warning("Capture refused (%s): %s", reason.value, detail)
            self.last_error = detail
            return CaptureResult(accepted=False, refusal=reason, detail=detail)

        # Everything below up to the first await belongs to this trigger
        session = self.session
        seq = session.sequence_number + 1
        session.sequence_number = seq
        coordinate = self.geo.coordinate
        filename = photo_filename(session.site_name, session.date, seq, coordinate.latitude, coordinate.longitude)
        session_id = session.session_id
        pitch = self.orientation.pitch
        heading = self.orientation.heading
        zoom = self.zoom
        device = self._device
        self._in_flight[session_id] += 1
        logger.info("Capture %d triggered: %s", seq, filename)

        try:
            frame = await asyncio.to_thread(device.grab_frame)
            image_bytes = await asyncio.to_thread(self.encoder.encode, frame)
        except Exception as exc:  # noqa: BLE001 - the slot is lost, the session continues
            self._upload_settled(session_id)
            self._mark_failed(session_id, seq)
            detail = f"Frame capture failed: {exc}"
            logger.error("Capture %d failed: %s", seq, exc)
            self.last_error = detail
            return CaptureResult(
                accepted=False,
                sequence_number=seq,
                filename=filename,
                refusal=CaptureRefusal.FRAME_UNAVAILABLE,
                detail=detail,
            )

        record = PhotoRecord(
            session_id=session_id,
            sequence_number=seq,
            coordinate=coordinate,
            pitch=pitch,
            heading=heading,
            zoom_factor=zoom,
            filename=filename,
            image_bytes=image_bytes,
        )
        task = asyncio.create_task(self._upload(record), name=f"upload-{seq}")
        self._uploads.add(task)
        task.add_done_callback(self._uploads.discard)
        return CaptureResult(accepted=True, sequence_number=seq, filename=filename, upload=task)

    async def _upload(self, record: PhotoRecord) -> UploadResult:
        try:
            result = await asyncio.to_thread(self.network.upload_photo, record)
        except Exception as exc:  # noqa: BLE001 - clients should not raise, but never let it escape
            logger.exception("Upload %d raised: %s", record.sequence_number, exc)
            result = UploadResult(
                ok=False, sequence_number=record.sequence_number, filename=record.filename, error=str(exc)
            )
        finally:
            self._upload_settled(record.session_id)

        if result.ok:
            logger.info("Photo %d uploaded (%s)", record.sequence_number, record.filename)
        else:
            logger.error("Photo %d upload failed: %s", record.sequence_number, result.error)
            self._mark_failed(record.session_id, record.sequence_number)
            self.last_error = f"Upload of photo {record.sequence_number} failed"
        return result

    def _upload_settled(self, session_id: str) -> None:
        self._in_flight[session_id] -= 1
        if self._in_flight[session_id] <= 0:
            del self._in_flight[session_id]

    def _mark_failed(self, session_id: Optional[str], seq: int) -> None:
        # uploads can outlive their session; only report gaps of the current one
        if session_id is not None and session_id == self.session.session_id:
            self.session.failed_sequences.append(seq)

    async def drain(self) -> List[UploadResult]:
        """Wait for every upload in flight."""
        if not self._uploads:
            return []
        return list(await asyncio.gather(*list(self._uploads)))

    # ------------------------------------------------------------------
    # Stop
    # ------------------------------------------------------------------
    def stop(self) -> None:
        """Active -> Stopped. Releases the camera; uploads in flight keep going."""
        if self._phase in (SessionStatus.IDLE, SessionStatus.STOPPED) and self._device is None:
            return
        self._release_device()
        self.orientation.clear_baseline()
        self._phase = SessionStatus.STOPPED
        logger.info("Session %s stopped after %d photos", self.session.session_id, self.session.sequence_number)

    def _apply_zoom(self, device: MediaDevice) -> None:
        try:
            target = resolve_zoom(self.zoom_mode, device.zoom_range)
            self.zoom = device.apply_zoom(target) if device.zoom_range is not None else 1.0
        except Exception as exc:  # noqa: BLE001 - zoom is best effort
            logger.warning("Zoom could not be applied: %s", exc)
            self.zoom = 1.0

    def _release_device(self) -> None:
        device, self._device = self._device, None
        if device is not None:
            self._release(device)

    @staticmethod
    def _release(device: MediaDevice) -> None:
        try:
            device.release()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Camera release failed: %s", exc)


__all__ = [
    "CaptureSessionController",
    "Confirmation",
    "ControllerSnapshot",
    "LOW_BATTERY_PROMPT",
    "utc_today",
]
