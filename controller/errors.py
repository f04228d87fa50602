"""Exception hierarchy for snapbox.

Every error is terminal for the operation that raised it. The controller
records it in health so the web page can show what went wrong.
"""

from __future__ import annotations

from enum import Enum, auto
from typing import Optional


class ErrorCode(Enum):
    PERMISSION_DENIED = auto()
    DEVICE_UNAVAILABLE = auto()
    INPUT_CREATION_FAILED = auto()
    CONFIGURATION_FAILED = auto()
    CAPTURE_FAILED = auto()
    IMAGE_EXTRACTION_FAILED = auto()
    SAVE_FAILED = auto()
    UNKNOWN = auto()


class SnapboxError(Exception):
    """Base exception for all snapbox errors."""

    code: ErrorCode = ErrorCode.UNKNOWN


class PermissionDenied(SnapboxError):
    """Camera use was refused or is restricted for this process."""

    code = ErrorCode.PERMISSION_DENIED


class CameraError(SnapboxError):
    """Base exception for camera-related errors."""

    def __init__(self, message: str, device_id: Optional[str] = None):
        self.device_id = device_id
        super().__init__(message)


class ConfigurationError(CameraError):
    """Raised when the capture session cannot be configured."""


class DeviceUnavailable(ConfigurationError):
    """No camera matching the requested position and type exists."""

    code = ErrorCode.DEVICE_UNAVAILABLE


class InputCreationError(ConfigurationError):
    """The device exists but an input could not be opened on it (busy, gone)."""

    code = ErrorCode.INPUT_CREATION_FAILED


class ConfigurationFailed(ConfigurationError):
    """Input or output could not be added to the session."""

    code = ErrorCode.CONFIGURATION_FAILED


class CaptureError(CameraError):
    """Base exception for still capture failures."""

    code = ErrorCode.CAPTURE_FAILED


class CaptureFailed(CaptureError):
    """The device reported an error while producing the still."""


class ImageExtractionFailed(CaptureError):
    """The capture reported no error but produced no usable bytes."""

    code = ErrorCode.IMAGE_EXTRACTION_FAILED


class SaveFailed(SnapboxError):
    """The captured image could not be decoded or written to the library."""

    code = ErrorCode.SAVE_FAILED
