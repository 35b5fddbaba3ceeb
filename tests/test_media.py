from __future__ import annotations

import io
import threading
from unittest.mock import Mock

import numpy as np
import pytest
from PIL import Image

from trenchsight.capture import media
from trenchsight.capture.media import FrameEncoder, MediaCaptureError, ZoomMode, ZoomRange, resolve_zoom


def test_resolve_zoom_modes_and_clamping():
    assert resolve_zoom(ZoomMode.NORMAL, None) == 1.0
    assert resolve_zoom(ZoomMode.WIDE, None) == 1.0
    assert resolve_zoom(ZoomMode.WIDE, ZoomRange(min=0.5, max=10.0)) == 0.5
    assert resolve_zoom(ZoomMode.NORMAL, ZoomRange(min=0.5, max=10.0)) == 1.0
    # devices that cannot go down to 1x
    assert resolve_zoom(ZoomMode.NORMAL, ZoomRange(min=2.0, max=10.0)) == 2.0


def test_encoder_converts_bgr_frames_to_rgb_jpeg():
    frame = np.zeros((16, 16, 3), dtype=np.uint8)
    frame[:, :, 2] = 255  # pure red in BGR order

    data = FrameEncoder(quality=95).encode(frame)

    image = Image.open(io.BytesIO(data))
    assert image.format == "JPEG"
    r, g, b = image.convert("RGB").getpixel((8, 8))
    assert r > 200 and g < 50 and b < 50


def test_encoder_accepts_pil_images_and_rejects_other_types():
    data = FrameEncoder().encode(Image.new("RGBA", (4, 4), (0, 255, 0, 255)))
    assert data[:2] == b"\xff\xd8"

    with pytest.raises(TypeError):
        FrameEncoder().encode(b"not a frame")


def test_opencv_capture_raises_when_camera_cannot_open(monkeypatch):
    capture = Mock()
    capture.isOpened.return_value = False
    monkeypatch.setattr(media.cv2, "VideoCapture", Mock(return_value=capture))

    with pytest.raises(MediaCaptureError):
        media.OpenCVMediaCapture(0).acquire()
    capture.release.assert_called_once()


def test_opencv_device_warms_up_and_reads_frames(monkeypatch):
    frame = np.zeros((4, 4, 3), dtype=np.uint8)
    capture = Mock()
    capture.isOpened.return_value = True
    capture.read.return_value = (True, frame)
    capture.get.return_value = 0.0  # no zoom support
    monkeypatch.setattr(media.cv2, "VideoCapture", Mock(return_value=capture))

    device = media.OpenCVMediaCapture(0, warmup_frames=3).acquire()

    assert capture.read.call_count == 3
    assert device.zoom_range is None
    assert device.apply_zoom(0.5) == 1.0
    assert device.grab_frame() is frame
    device.release()
    capture.release.assert_called_once()


def test_opencv_device_frame_failure(monkeypatch):
    capture = Mock()
    capture.isOpened.return_value = True
    capture.read.return_value = (False, None)
    capture.get.return_value = 0.0
    monkeypatch.setattr(media.cv2, "VideoCapture", Mock(return_value=capture))

    device = media.OpenCVMediaCapture(0, warmup_frames=0).acquire()

    with pytest.raises(MediaCaptureError):
        device.grab_frame()


def test_opencv_device_release_waits_for_a_frame_read_in_progress():
    frame = np.zeros((4, 4, 3), dtype=np.uint8)
    reading = threading.Event()
    finish = threading.Event()
    events = []

    def slow_read():
        reading.set()
        finish.wait(timeout=5)
        events.append("read")
        return True, frame

    capture = Mock()
    capture.get.return_value = 0.0
    capture.read.side_effect = slow_read
    capture.release.side_effect = lambda: events.append("release")
    device = media.OpenCVDevice(capture)

    reader = threading.Thread(target=device.grab_frame)
    reader.start()
    assert reading.wait(timeout=5)

    releaser = threading.Thread(target=device.release)
    releaser.start()
    releaser.join(timeout=0.1)
    assert releaser.is_alive()
    assert events == []

    finish.set()
    reader.join(timeout=5)
    releaser.join(timeout=5)

    assert events == ["read", "release"]


def test_opencv_device_is_unusable_after_release():
    capture = Mock()
    capture.get.return_value = 0.0
    device = media.OpenCVDevice(capture)

    device.release()
    device.release()

    capture.release.assert_called_once()
    with pytest.raises(MediaCaptureError):
        device.grab_frame()
    capture.read.assert_not_called()
