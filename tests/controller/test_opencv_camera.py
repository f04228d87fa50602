import cv2
import mock
import numpy as np
import pytest

from controller.camera_base import CameraDevice, DevicePosition
from controller.capture_settings import CaptureSettings
from controller.errors import CaptureFailed, InputCreationError
from controller.opencv_camera import HIGH_RESOLUTION_REQUEST, OpenCVCamera


def fake_capture(opened=True, frame_ok=True, set_ok=True):
    capture = mock.MagicMock()
    capture.isOpened.return_value = opened
    capture.get.return_value = 640.0
    capture.set.return_value = set_ok
    frame = np.zeros((48, 64, 3), dtype=np.uint8)
    capture.read.return_value = (frame_ok, frame if frame_ok else None)
    return capture


def size_calls(capture):
    """(width, height) pairs in the order they were set."""
    widths = [c.args[1] for c in capture.set.call_args_list if c.args[0] == cv2.CAP_PROP_FRAME_WIDTH]
    heights = [c.args[1] for c in capture.set.call_args_list if c.args[0] == cv2.CAP_PROP_FRAME_HEIGHT]
    return list(zip(widths[1:], heights))  # first width set is the capability probe


DEVICE = CameraDevice("0", "video0", DevicePosition.BACK)


def test_devices_lists_usable_video_nodes(monkeypatch):
    monkeypatch.setattr("glob.glob", lambda pattern: ["/dev/video2", "/dev/video0", "/dev/video1"])
    usable = {0: True, 1: False, 2: True}

    with mock.patch.object(cv2, "VideoCapture", side_effect=lambda i, api: fake_capture(opened=usable[i])):
        devices = OpenCVCamera().devices()

    assert [d.identifier for d in devices] == ["0", "2"]
    assert all(d.position == DevicePosition.BACK for d in devices)


def test_devices_probes_indices_without_video_nodes(monkeypatch):
    monkeypatch.setattr("glob.glob", lambda pattern: [])
    probed = []

    def open_index(index, api):
        probed.append(index)
        return fake_capture(opened=index == 1)

    with mock.patch.object(cv2, "VideoCapture", side_effect=open_index):
        devices = OpenCVCamera(probe_limit=3, position=DevicePosition.FRONT).devices()

    assert probed == [0, 1, 2]
    assert [d.identifier for d in devices] == ["1"]
    assert devices[0].position == DevicePosition.FRONT


def test_default_device_requires_back_position(monkeypatch):
    monkeypatch.setattr("glob.glob", lambda pattern: ["/dev/video0"])

    with mock.patch.object(cv2, "VideoCapture", return_value=fake_capture()):
        assert OpenCVCamera(position=DevicePosition.FRONT).default_device() is None
        assert OpenCVCamera().default_device().identifier == "0"


def test_open_input_failure_raises_input_creation_error():
    capture = fake_capture(opened=False)

    with mock.patch.object(cv2, "VideoCapture", return_value=capture):
        with pytest.raises(InputCreationError, match="in use or not found"):
            OpenCVCamera().open_input(DEVICE)

    capture.release.assert_called_once()


def test_open_input_rejects_non_index_identifier():
    with pytest.raises(InputCreationError):
        OpenCVCamera().open_input(CameraDevice("usb-1234", "usb camera"))


def test_read_frame_returns_jpeg():
    with mock.patch.object(cv2, "VideoCapture", return_value=fake_capture()):
        camera_input = OpenCVCamera().open_input(DEVICE)

    frame = camera_input.read_frame()

    assert frame[:2] == b"\xff\xd8"


def test_read_frame_failure_raises():
    with mock.patch.object(cv2, "VideoCapture", return_value=fake_capture(frame_ok=False)):
        camera_input = OpenCVCamera().open_input(DEVICE)

    with pytest.raises(CaptureFailed):
        camera_input.read_frame()


def test_capture_still_requests_dimensions_then_restores_preview():
    capture = fake_capture()
    with mock.patch.object(cv2, "VideoCapture", return_value=capture):
        camera_input = OpenCVCamera(preview_size=(1280, 720)).open_input(DEVICE)

    data = camera_input.capture_still(CaptureSettings.for_still(True))

    assert data[:2] == b"\xff\xd8"
    assert size_calls(capture) == [(4032, 3024), (1280, 720)]


def test_capture_still_high_resolution_flag():
    capture = fake_capture(set_ok=False)
    with mock.patch.object(cv2, "VideoCapture", return_value=capture):
        camera_input = OpenCVCamera(preview_size=(1280, 720)).open_input(DEVICE)

    assert camera_input.supports_max_dimensions is False
    camera_input.capture_still(CaptureSettings.for_still(camera_input.supports_max_dimensions))

    assert size_calls(capture)[0] == HIGH_RESOLUTION_REQUEST


def test_capture_still_device_failure_raises():
    capture = fake_capture(frame_ok=False)
    with mock.patch.object(cv2, "VideoCapture", return_value=capture):
        camera_input = OpenCVCamera(preview_size=(1280, 720)).open_input(DEVICE)

    with pytest.raises(CaptureFailed):
        camera_input.capture_still(CaptureSettings.for_still(True))
    # preview size restored even on failure
    assert size_calls(capture)[-1] == (1280, 720)


def test_capture_still_returns_none_when_encoding_fails(monkeypatch):
    with mock.patch.object(cv2, "VideoCapture", return_value=fake_capture()):
        camera_input = OpenCVCamera().open_input(DEVICE)
    monkeypatch.setattr(cv2, "imencode", lambda ext, frame, params: (False, None))

    assert camera_input.capture_still(CaptureSettings.for_still(True)) is None


def test_close_releases_capture():
    capture = fake_capture()
    with mock.patch.object(cv2, "VideoCapture", return_value=capture):
        camera_input = OpenCVCamera().open_input(DEVICE)

    camera_input.close()

    capture.release.assert_called_once()
    assert camera_input.is_open is False
    with pytest.raises(CaptureFailed):
        camera_input.read_frame()
