"""
Capture API

Operator console endpoints. The handset renders ``GET /capture/state`` and
forwards its sensor readings; every intent maps onto the capture controller.

Endpoints:
    - GET  /capture/state
    - PUT  /capture/settings
    - POST /capture/start
    - POST /capture/photo
    - POST /capture/stop
    - POST /capture/sensors/location | /sensors/location/error
    - POST /capture/sensors/orientation | /sensors/orientation/error
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Response

from ...core.logger import get_logger
from ...schemas.capture import (
    CaptureResponse,
    ControllerStateResponse,
    LocationEvent,
    OrientationEvent,
    SensorErrorEvent,
    SettingsUpdateRequest,
    StartRequest,
    StartResponse,
)
from ...services.capture import capture_service

router = APIRouter(prefix="/capture", tags=["Capture"])
logger = get_logger("api.capture")


def _state() -> ControllerStateResponse:
    return ControllerStateResponse.model_validate(capture_service.controller.snapshot())


@router.get("/state", response_model=ControllerStateResponse, summary="Current capture state")
async def state() -> ControllerStateResponse:
    return _state()


@router.put("/settings", response_model=ControllerStateResponse, summary="Update site, date or zoom mode")
async def update_settings(payload: SettingsUpdateRequest) -> ControllerStateResponse:
    controller = capture_service.controller
    if payload.site_name is not None:
        controller.set_site_name(payload.site_name)
    if payload.date is not None:
        controller.set_date(payload.date)
    if payload.zoom_mode is not None:
        controller.set_zoom_mode(payload.zoom_mode)
    return _state()


@router.post("/start", response_model=StartResponse, summary="Start a capture session")
async def start(payload: StartRequest) -> StartResponse:
    logger.info("POST /capture/start received: confirm_low_battery=%s", payload.confirm_low_battery)
    result = await capture_service.controller.start(confirm=lambda _prompt: payload.confirm_low_battery)
    response = StartResponse(
        started=result.started,
        session_id=result.session_id,
        refusal=result.refusal,
        detail=result.detail,
    )
    if not result.started:
        raise HTTPException(status_code=409, detail=response.model_dump(mode="json"))
    return response


@router.post("/photo", response_model=CaptureResponse, summary="Capture and upload a photo")
async def photo() -> CaptureResponse:
    result = await capture_service.controller.capture()
    response = CaptureResponse(
        accepted=result.accepted,
        sequence_number=result.sequence_number,
        filename=result.filename,
        refusal=result.refusal,
        detail=result.detail,
    )
    if not result.accepted:
        raise HTTPException(status_code=409, detail=response.model_dump(mode="json"))
    logger.info("POST /capture/photo accepted: seq=%s filename=%s", result.sequence_number, result.filename)
    return response


@router.post("/stop", response_model=ControllerStateResponse, summary="Stop the capture session")
async def stop() -> ControllerStateResponse:
    capture_service.controller.stop()
    return _state()


@router.post("/sensors/location", status_code=204, summary="Position fix from the handset")
async def location(event: LocationEvent) -> Response:
    capture_service.push_location(event.latitude, event.longitude, event.timestamp_ms)
    return Response(status_code=204)


@router.post("/sensors/location/error", status_code=204, summary="Position stream failed or was denied")
async def location_error(event: SensorErrorEvent) -> Response:
    capture_service.report_location_error(event.message)
    return Response(status_code=204)


@router.post("/sensors/orientation", status_code=204, summary="Orientation event from the handset")
async def orientation(event: OrientationEvent) -> Response:
    capture_service.push_orientation(event.heading, event.pitch)
    return Response(status_code=204)


@router.post("/sensors/orientation/error", status_code=204, summary="Orientation stream unsupported or denied")
async def orientation_error(event: SensorErrorEvent) -> Response:
    capture_service.report_orientation_error(event.message)
    return Response(status_code=204)
