"""
Capture Session Model

Session-scoped state owned by the controller, the per-photo record handed to
the backend, and the explicit outcome types returned by every operator intent
and network call.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Protocol

from .geo import Coordinate


class SessionStatus(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    ACTIVE = "active"
    CAPTURING = "capturing"
    STOPPED = "stopped"


@dataclass
class SessionState:
    """Everything that belongs to one capture session."""

    site_name: str = ""
    date: str = ""
    session_id: Optional[str] = None
    sequence_number: int = 0
    start_anchor: Optional[Coordinate] = None
    failed_sequences: List[int] = field(default_factory=list)

    def reset(self, *, keep_progress: bool = False) -> None:
        """Clear session-scoped fields; operator inputs (site, date) survive.

        ``keep_progress`` keeps the sequence counter and anchor across
        sessions (legacy restart behaviour).
        """
        self.session_id = None
        self.failed_sequences = []
        if not keep_progress:
            self.sequence_number = 0
            self.start_anchor = None


@dataclass(frozen=True)
class PhotoRecord:
    """One captured photo on its way to the backend. Never stored locally."""

    session_id: str
    sequence_number: int
    coordinate: Coordinate
    pitch: Optional[float]
    heading: Optional[float]
    zoom_factor: float
    filename: str
    image_bytes: bytes = field(repr=False)


@dataclass(frozen=True)
class SessionRequest:
    site_name: str
    date: str
    start: Coordinate
    device: str


@dataclass(frozen=True)
class SessionResult:
    ok: bool
    session_id: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class UploadResult:
    ok: bool
    sequence_number: int
    filename: str
    status_code: Optional[int] = None
    error: Optional[str] = None


class NetworkClient(Protocol):
    """Backend boundary. Implementations report failures in the result, never raise."""

    def create_session(self, request: SessionRequest) -> SessionResult:
        ...

    def upload_photo(self, record: PhotoRecord) -> UploadResult:
        ...


class StartRefusal(str, Enum):
    INVALID_STATE = "invalid_state"
    STORAGE_INSUFFICIENT = "storage_insufficient"
    BATTERY_DECLINED = "battery_declined"
    MISSING_SITE_NAME = "missing_site_name"
    POSITION_UNAVAILABLE = "position_unavailable"
    DEVICE_UNAVAILABLE = "device_unavailable"
    SESSION_CREATION_FAILED = "session_creation_failed"


class CaptureRefusal(str, Enum):
    NOT_ACTIVE = "not_active"
    BASELINE_UNSET = "baseline_unset"
    ANGLE_UNSTABLE = "angle_unstable"
    POSITION_UNAVAILABLE = "position_unavailable"
    FRAME_UNAVAILABLE = "frame_unavailable"


@dataclass(frozen=True)
class StartResult:
    started: bool
    session_id: Optional[str] = None
    refusal: Optional[StartRefusal] = None
    detail: Optional[str] = None


@dataclass(frozen=True)
class CaptureResult:
    """Outcome of a capture trigger.

    ``accepted`` means the photo was handed to the uploader; the upload itself
    completes later through ``upload``. ``sequence_number`` is set whenever
    the trigger consumed a number, including a failed frame grab.
    """

    accepted: bool
    sequence_number: Optional[int] = None
    filename: Optional[str] = None
    refusal: Optional[CaptureRefusal] = None
    detail: Optional[str] = None
    upload: Optional[asyncio.Task[UploadResult]] = field(default=None, repr=False, compare=False)


__all__ = [
    "CaptureRefusal",
    "CaptureResult",
    "NetworkClient",
    "PhotoRecord",
    "SessionRequest",
    "SessionResult",
    "SessionState",
    "SessionStatus",
    "StartRefusal",
    "StartResult",
    "UploadResult",
]
