"""OpenCV-backed camera."""

from __future__ import annotations

import glob
import re
import threading
from typing import List, Optional, Tuple

import cv2
from loguru import logger

from controller.camera_base import Camera, CameraDevice, CameraInput, DevicePosition, DeviceType
from controller.capture_settings import CaptureSettings, FlashMode
from controller.errors import CaptureFailed, InputCreationError

# Requested when the backend cannot take exact dimensions; drivers clamp to their maximum.
HIGH_RESOLUTION_REQUEST = (10000, 10000)

# Frames dropped after a mode change so the still is not a stale buffer.
SETTLE_FRAMES = 3

_VIDEO_NODE = re.compile(r"/dev/video(\d+)$")


class OpenCVCameraInput(CameraInput):
    def __init__(
            self,
            device: CameraDevice,
            capture: cv2.VideoCapture,
            preview_size: Tuple[int, int],
            jpeg_quality: int,
    ):
        super().__init__(device)
        self._capture: Optional[cv2.VideoCapture] = capture
        self._preview_size = preview_size
        self._jpeg_quality = jpeg_quality
        self._io_lock = threading.Lock()

        # Some backends accept no size changes at all; probe with the current width.
        current_width = capture.get(cv2.CAP_PROP_FRAME_WIDTH)
        self._supports_max_dimensions = bool(capture.set(cv2.CAP_PROP_FRAME_WIDTH, current_width))

    @property
    def is_open(self) -> bool:
        return self._capture is not None and self._capture.isOpened()

    @property
    def supports_max_dimensions(self) -> bool:
        return self._supports_max_dimensions

    def start_streaming(self) -> None:
        with self._io_lock:
            self._set_size(self._require_capture(), self._preview_size)

    def stop_streaming(self) -> None:
        # cv2.VideoCapture has no paused state; frames are simply no longer read.
        pass

    def read_frame(self) -> bytes:
        with self._io_lock:
            ok, frame = self._require_capture().read()
        if not ok:
            raise CaptureFailed("Failed to read preview frame", device_id=self.device.identifier)
        data = self._encode(frame)
        if data is None:
            raise CaptureFailed("Failed to encode preview frame", device_id=self.device.identifier)
        return data

    def capture_still(self, settings: CaptureSettings) -> Optional[bytes]:
        if settings.flash_mode != FlashMode.OFF:
            logger.debug("Flash mode {} not supported by OpenCV devices; ignoring", settings.flash_mode.value)

        if settings.max_dimensions is not None:
            size = settings.max_dimensions
        elif settings.high_resolution:
            size = HIGH_RESOLUTION_REQUEST
        else:
            size = self._preview_size

        with self._io_lock:
            capture = self._require_capture()
            try:
                self._set_size(capture, size)
                for _ in range(SETTLE_FRAMES):
                    capture.grab()
                ok, frame = capture.read()
            finally:
                self._set_size(capture, self._preview_size)

        if not ok:
            raise CaptureFailed("Camera returned no frame for the still", device_id=self.device.identifier)

        height, width = frame.shape[:2]
        if settings.max_dimensions is not None and (width, height) != settings.max_dimensions:
            logger.debug("Requested {}x{} still but got {}x{}", *settings.max_dimensions, width, height)
        return self._encode(frame)

    def close(self) -> None:
        with self._io_lock:
            if self._capture is not None:
                self._capture.release()
                self._capture = None

    def _require_capture(self) -> cv2.VideoCapture:
        if self._capture is None:
            raise CaptureFailed("Camera input is closed", device_id=self.device.identifier)
        return self._capture

    @staticmethod
    def _set_size(capture: cv2.VideoCapture, size: Tuple[int, int]) -> None:
        width, height = size
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, height)

    def _encode(self, frame) -> Optional[bytes]:
        ok, buf = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, self._jpeg_quality])
        if not ok:
            return None
        return buf.tobytes()


class OpenCVCamera(Camera):
    """
    Index-based OpenCV camera backend.

    OpenCV cannot tell which way a camera faces, so every device reports the
    configured position (back by default).
    """

    def __init__(
            self,
            position: DevicePosition = DevicePosition.BACK,
            probe_limit: int = 10,
            preview_size: Tuple[int, int] = (1280, 720),
            jpeg_quality: int = 95,
            api_preference: int = cv2.CAP_ANY,
    ):
        self.position = position
        self.probe_limit = probe_limit
        self.preview_size = preview_size
        self.jpeg_quality = jpeg_quality
        self.api_preference = api_preference

    def devices(self) -> List[CameraDevice]:
        devices = []
        for index in self._candidate_indices():
            capture = cv2.VideoCapture(index, self.api_preference)
            try:
                usable = capture.isOpened()
            finally:
                capture.release()
            if usable:
                devices.append(
                    CameraDevice(
                        identifier=str(index),
                        name=f"video{index}",
                        position=self.position,
                        device_type=DeviceType.WIDE_ANGLE,
                    )
                )
        logger.debug("Discovered {} camera device(s)", len(devices))
        return devices

    def open_input(self, device: CameraDevice) -> OpenCVCameraInput:
        if not device.identifier.isdigit():
            raise InputCreationError(
                f"OpenCV devices are index-based, got {device.identifier!r}",
                device_id=device.identifier,
            )

        index = int(device.identifier)
        logger.info("Opening OpenCV camera index {}", index)
        capture = cv2.VideoCapture(index, self.api_preference)
        if not capture.isOpened():
            capture.release()
            raise InputCreationError(
                f"Failed to open camera index {index} - camera may be in use or not found",
                device_id=device.identifier,
            )
        return OpenCVCameraInput(device, capture, self.preview_size, self.jpeg_quality)

    def _candidate_indices(self) -> List[int]:
        # Linux lists its nodes; elsewhere probe the first indices.
        nodes = glob.glob("/dev/video*")
        indices = sorted(int(m.group(1)) for m in (_VIDEO_NODE.match(n) for n in nodes) if m)
        if indices:
            return indices
        return list(range(self.probe_limit))
