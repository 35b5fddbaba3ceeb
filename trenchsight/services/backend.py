"""
Backend Client

HTTP client for the session/photo backend.

Endpoints:
    - POST /api/sessions : JSON body, returns ``{"session_id": ...}``
    - POST /api/photos   : multipart form with the image and its metadata

Failures (connection errors, non-2xx answers, malformed bodies) are returned
as ``ok=False`` results and never raised.
"""

from __future__ import annotations

import urllib.parse
from typing import Dict, Optional

import requests
from pydantic import ValidationError

from ..capture.session import PhotoRecord, SessionRequest, SessionResult, UploadResult
from ..core.logger import get_logger
from ..schemas.backend import SessionCreateRequest, SessionCreateResponse

logger = get_logger("services.backend")

SESSIONS_PATH = "/api/sessions"
PHOTOS_PATH = "/api/photos"


def format_number(value: float) -> str:
    """Render numbers the way the field client does (``1`` not ``1.0``)."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def build_photo_form(record: PhotoRecord) -> Dict[str, str]:
    """Multipart text fields for one photo; unknown tilt/heading are omitted."""
    form = {
        "session_id": record.session_id,
        "seq": str(record.sequence_number),
        "lat": format_number(record.coordinate.latitude),
        "lng": format_number(record.coordinate.longitude),
    }
    if record.pitch is not None:
        form["tilt_deg"] = format_number(record.pitch)
    if record.heading is not None:
        form["heading_deg"] = format_number(record.heading)
    form["zoom"] = format_number(record.zoom_factor)
    form["filename"] = record.filename
    return form


class BackendClient:
    """``NetworkClient`` over requests. ``timeout_s=None`` waits indefinitely."""

    def __init__(
        self,
        base_url: str = "",
        *,
        timeout_s: Optional[float] = None,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._http = session or requests.Session()

    def _url(self, path: str) -> str:
        if not self.base_url:
            return path
        return urllib.parse.urljoin(self.base_url + "/", path.lstrip("/"))

    def create_session(self, request: SessionRequest) -> SessionResult:
        payload = SessionCreateRequest(
            site_name=request.site_name,
            date=request.date,
            start_lat=request.start.latitude,
            start_lng=request.start.longitude,
            device=request.device,
        )
        url = self._url(SESSIONS_PATH)
        logger.info("POST %s site=%s date=%s", url, payload.site_name, payload.date)
        try:
            resp = self._http.post(url, json=payload.model_dump(), timeout=self.timeout_s)
            resp.raise_for_status()
            body = SessionCreateResponse.model_validate(resp.json())
        except requests.RequestException as exc:
            logger.error("Session creation failed: %s", exc)
            return SessionResult(ok=False, error=str(exc))
        except (ValueError, ValidationError) as exc:
            logger.error("Session creation returned an unusable body: %s", exc)
            return SessionResult(ok=False, error=f"invalid response: {exc}")

        logger.info("Session %s created", body.session_id)
        return SessionResult(ok=True, session_id=body.session_id)

    def upload_photo(self, record: PhotoRecord) -> UploadResult:
        url = self._url(PHOTOS_PATH)
        form = build_photo_form(record)
        files = {"file": (record.filename, record.image_bytes, "image/jpeg")}
        logger.info(
            "POST %s session=%s seq=%d bytes=%d",
            url,
            record.session_id,
            record.sequence_number,
            len(record.image_bytes),
        )
        try:
            resp = self._http.post(url, data=form, files=files, timeout=self.timeout_s)
            resp.raise_for_status()
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            return UploadResult(
                ok=False,
                sequence_number=record.sequence_number,
                filename=record.filename,
                status_code=status,
                error=str(exc),
            )
        except requests.RequestException as exc:
            return UploadResult(
                ok=False, sequence_number=record.sequence_number, filename=record.filename, error=str(exc)
            )

        return UploadResult(
            ok=True,
            sequence_number=record.sequence_number,
            filename=record.filename,
            status_code=resp.status_code,
        )


__all__ = ["BackendClient", "PHOTOS_PATH", "SESSIONS_PATH", "build_photo_form", "format_number"]
