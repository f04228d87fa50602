# tests/fakes/fake_camera.py

import threading
from typing import List, Optional

from controller.camera_base import Camera, CameraDevice, CameraInput, DevicePosition, DeviceType
from controller.capture_settings import CaptureSettings
from controller.errors import InputCreationError
from tests.helpers import make_jpeg

CAMERA_NOT_CONNECTED = "Camera not connected"

BACK_WIDE = CameraDevice(
    identifier="0",
    name="fake back camera",
    position=DevicePosition.BACK,
    device_type=DeviceType.WIDE_ANGLE,
)


class FakeCameraInput(CameraInput):
    def __init__(self, device: CameraDevice, camera: "FakeCamera"):
        super().__init__(device)
        self._camera = camera
        self.streaming = False
        self.closed = False

    @property
    def is_open(self) -> bool:
        return self._camera.input_open and not self.closed

    @property
    def supports_still_capture(self) -> bool:
        return self._camera.supports_still_capture

    @property
    def supports_max_dimensions(self) -> bool:
        return self._camera.supports_max_dimensions

    def start_streaming(self) -> None:
        if not self._camera.connected:
            raise RuntimeError(CAMERA_NOT_CONNECTED)
        self.streaming = True

    def stop_streaming(self) -> None:
        self.streaming = False

    def read_frame(self) -> bytes:
        if not self._camera.connected:
            raise RuntimeError(CAMERA_NOT_CONNECTED)
        if not self.streaming:
            raise RuntimeError("Live view not active")
        return self._camera.frame

    def capture_still(self, settings: CaptureSettings) -> Optional[bytes]:
        self._camera.capture_settings.append(settings)
        gate = self._camera.capture_gate
        if gate is not None:
            gate.wait(timeout=5)
        if self._camera.capture_error is not None:
            raise self._camera.capture_error
        if not self._camera.connected:
            raise RuntimeError(CAMERA_NOT_CONNECTED)
        return self._camera.still_data

    def close(self) -> None:
        self.closed = True
        self.streaming = False


class FakeCamera(Camera):
    def __init__(self, devices: Optional[List[CameraDevice]] = None):
        self.device_list = [BACK_WIDE] if devices is None else devices
        self.connected = True
        self.busy = False

        # Knobs for session wiring
        self.input_open = True
        self.supports_still_capture = True
        self.supports_max_dimensions = True

        # Knobs for capture behavior
        self.frame = make_jpeg((64, 48), "blue")
        self.still_data: Optional[bytes] = make_jpeg((160, 120), "red")
        self.capture_error: Optional[Exception] = None
        self.capture_gate: Optional[threading.Event] = None

        self.opened_inputs: List[FakeCameraInput] = []
        self.capture_settings: List[CaptureSettings] = []

    def devices(self) -> List[CameraDevice]:
        return list(self.device_list)

    def open_input(self, device: CameraDevice) -> FakeCameraInput:
        if self.busy:
            raise InputCreationError("Device is busy", device_id=device.identifier)
        camera_input = FakeCameraInput(device, self)
        self.opened_inputs.append(camera_input)
        return camera_input
