"""Pydantic schemas for the operator capture API."""

from __future__ import annotations

import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..capture.media import ZoomMode
from ..capture.session import CaptureRefusal, SessionStatus, StartRefusal


class CoordinateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    latitude: float
    longitude: float


class ControllerStateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    status: SessionStatus
    site_name: str
    date: str
    session_id: Optional[str] = None
    sequence_number: int
    coordinate: Optional[CoordinateOut] = None
    anchor: Optional[CoordinateOut] = None
    distance_m: float
    position_available: bool
    heading: Optional[float] = None
    pitch: Optional[float] = None
    angle_baseline: Optional[float] = None
    angle_warning: bool
    orientation_available: bool
    battery_low: bool
    battery_level: Optional[float] = None
    battery_available: bool
    storage_ok: bool
    storage_available: bool
    zoom_mode: ZoomMode
    zoom: float
    capture_permitted: bool
    uploads_in_flight: int
    failed_sequences: List[int] = Field(default_factory=list)
    last_error: Optional[str] = None


class SettingsUpdateRequest(BaseModel):
    site_name: Optional[str] = Field(None, description="Excavation site name")
    date: Optional[dt.date] = Field(None, description="Survey date (ISO calendar date)")
    zoom_mode: Optional[ZoomMode] = Field(None, description="0.5x or 1x")


class StartRequest(BaseModel):
    confirm_low_battery: bool = Field(False, description="Proceed even when the battery is low")


class StartResponse(BaseModel):
    started: bool
    session_id: Optional[str] = None
    refusal: Optional[StartRefusal] = None
    detail: Optional[str] = None


class CaptureResponse(BaseModel):
    accepted: bool
    sequence_number: Optional[int] = None
    filename: Optional[str] = None
    refusal: Optional[CaptureRefusal] = None
    detail: Optional[str] = None


class LocationEvent(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    timestamp_ms: Optional[int] = Field(None, ge=0, description="Fix time, epoch milliseconds on the handset clock")


class OrientationEvent(BaseModel):
    heading: Optional[float] = Field(None, description="Compass heading in degrees, null when unsupported")
    pitch: Optional[float] = Field(None, description="Front-back tilt in degrees, null when unsupported")


class SensorErrorEvent(BaseModel):
    message: str = Field("permission denied", description="Reason reported by the handset")
