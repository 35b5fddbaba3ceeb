from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient

from trenchsight.api.v1 import capture as capture_api
from trenchsight.main import app as main_app


def _build_client(monkeypatch, harness) -> TestClient:
    service = capture_api.capture_service
    monkeypatch.setattr(service, "_controller", harness.controller)
    monkeypatch.setattr(service, "location_source", harness.location)
    monkeypatch.setattr(service, "orientation_source", harness.orientation)

    app = FastAPI()
    app.include_router(capture_api.router, prefix="/api/v1")
    return TestClient(app)


def test_health_check():
    resp = TestClient(main_app).get("/")

    assert resp.status_code == 200
    assert resp.json()["status"] == "operational"


def test_state_reports_idle_controller(monkeypatch, make_harness):
    with _build_client(monkeypatch, make_harness()) as client:
        resp = client.get("/api/v1/capture/state")

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "idle"
    assert body["site_name"] == "Trench Alpha!"
    assert body["date"] == "2024-05-01"
    assert body["sequence_number"] == 0
    assert body["coordinate"] is None
    assert body["capture_permitted"] is False
    assert body["storage_ok"] is True


def test_full_capture_flow(monkeypatch, make_harness):
    h = make_harness()
    with _build_client(monkeypatch, h) as client:
        assert client.post(
            "/api/v1/capture/sensors/location", json={"latitude": 41.015137, "longitude": 28.97953}
        ).status_code == 204

        resp = client.put("/api/v1/capture/settings", json={"site_name": "North Cut", "zoom_mode": "1x"})
        assert resp.status_code == 200
        assert resp.json()["site_name"] == "North Cut"

        resp = client.post("/api/v1/capture/start", json={"confirm_low_battery": False})
        assert resp.status_code == 200
        assert resp.json() == {"started": True, "session_id": "sess-1", "refusal": None, "detail": None}

        client.post("/api/v1/capture/sensors/orientation", json={"heading": 90.0, "pitch": 45.0})
        resp = client.post("/api/v1/capture/photo")
        assert resp.status_code == 200
        body = resp.json()
        assert body["accepted"] is True
        assert body["sequence_number"] == 1
        assert body["filename"] == "North_Cut_2024-05-01_001_41.015137_28.979530.jpg"

        state = client.post("/api/v1/capture/stop").json()

    assert state["status"] == "stopped"
    assert state["sequence_number"] == 1
    assert state["angle_baseline"] is None
    assert h.device.release_count == 1


def test_start_refusal_maps_to_conflict(monkeypatch, make_harness):
    h = make_harness()
    h.fix(41.0, 29.0)
    h.readiness.storage_ok = False

    with _build_client(monkeypatch, h) as client:
        resp = client.post("/api/v1/capture/start", json={"confirm_low_battery": True})

    assert resp.status_code == 409
    assert resp.json()["detail"]["refusal"] == "storage_insufficient"
    h.media.acquire.assert_not_called()


def test_low_battery_confirmation_flag_is_forwarded(monkeypatch, make_harness):
    h = make_harness()
    h.fix(41.0, 29.0)
    h.readiness.battery_low = True

    with _build_client(monkeypatch, h) as client:
        declined = client.post("/api/v1/capture/start", json={})
        accepted = client.post("/api/v1/capture/start", json={"confirm_low_battery": True})

    assert declined.status_code == 409
    assert declined.json()["detail"]["refusal"] == "battery_declined"
    assert accepted.status_code == 200


def test_photo_refused_while_tilted(monkeypatch, make_harness):
    h = make_harness()
    h.fix(41.0, 29.0)

    with _build_client(monkeypatch, h) as client:
        client.post("/api/v1/capture/start", json={})
        client.post("/api/v1/capture/sensors/orientation", json={"pitch": 10.0})
        client.post("/api/v1/capture/sensors/orientation", json={"pitch": 20.0})
        resp = client.post("/api/v1/capture/photo")
        state = client.get("/api/v1/capture/state").json()

    assert resp.status_code == 409
    assert resp.json()["detail"]["refusal"] == "angle_unstable"
    assert state["angle_warning"] is True
    assert state["sequence_number"] == 0
    h.network.upload_photo.assert_not_called()


def test_location_error_marks_position_unavailable(monkeypatch, make_harness):
    with _build_client(monkeypatch, make_harness()) as client:
        resp = client.post("/api/v1/capture/sensors/location/error", json={"message": "User denied Geolocation"})
        state = client.get("/api/v1/capture/state").json()

    assert resp.status_code == 204
    assert state["position_available"] is False


def test_invalid_settings_are_rejected(monkeypatch, make_harness):
    with _build_client(monkeypatch, make_harness()) as client:
        bad_zoom = client.put("/api/v1/capture/settings", json={"zoom_mode": "3x"})
        bad_date = client.put("/api/v1/capture/settings", json={"date": "tomorrow"})
        bad_fix = client.post("/api/v1/capture/sensors/location", json={"latitude": 123.0, "longitude": 0.0})

    assert bad_zoom.status_code == 422
    assert bad_date.status_code == 422
    assert bad_fix.status_code == 422
