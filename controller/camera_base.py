from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from controller.capture_settings import CaptureSettings


class DevicePosition(Enum):
    FRONT = "front"
    BACK = "back"
    UNSPECIFIED = "unspecified"


class DeviceType(Enum):
    WIDE_ANGLE = "wide_angle"
    ULTRA_WIDE = "ultra_wide"
    TELEPHOTO = "telephoto"


@dataclass(frozen=True)
class CameraDevice:
    identifier: str
    name: str
    position: DevicePosition = DevicePosition.UNSPECIFIED
    device_type: DeviceType = DeviceType.WIDE_ANGLE


class CameraInput(ABC):
    """
    An opened camera device.

    Created by a backend's open_input(); owned by the session it is added to.
    """

    def __init__(self, device: CameraDevice):
        self.device = device

    @property
    def is_open(self) -> bool:
        return True

    @property
    def supports_still_capture(self) -> bool:
        """False when the device can stream but cannot feed a photo output."""
        return True

    @property
    def supports_max_dimensions(self) -> bool:
        """True if the still resolution can be requested in exact pixels."""
        return True

    @abstractmethod
    def start_streaming(self) -> None:
        """Start continuous frame delivery for preview."""
        pass

    @abstractmethod
    def stop_streaming(self) -> None:
        """Stop continuous frame delivery."""
        pass

    @abstractmethod
    def read_frame(self) -> bytes:
        """Return a single JPEG preview frame"""
        pass

    @abstractmethod
    def capture_still(self, settings: CaptureSettings) -> Optional[bytes]:
        """
        Produce one encoded still.

        Raise CameraError when the device reports a failure. Return None when
        the device succeeded but no encoded bytes could be obtained.
        """
        pass

    def close(self) -> None:
        pass


class Camera(ABC):
    """
    Abstract camera backend.

    All backends (real or fake) must implement this contract.
    """

    @abstractmethod
    def devices(self) -> List[CameraDevice]:
        """Return every camera device currently present."""
        pass

    @abstractmethod
    def open_input(self, device: CameraDevice) -> CameraInput:
        """Open an input on `device`. Raise InputCreationError on failure."""
        pass

    def default_device(
            self,
            device_type: DeviceType = DeviceType.WIDE_ANGLE,
            position: DevicePosition = DevicePosition.BACK,
    ) -> Optional[CameraDevice]:
        for device in self.devices():
            if device.device_type == device_type and device.position == position:
                return device
        return None
