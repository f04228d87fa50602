"""
Camera controller

Single owner of the permission gate, the capture session, the preview surface
and the photo library.

Goals:
- Nothing touches the camera until permission resolves to granted
- Session setup and photo saves run on the UI context; streaming and capture completions never do
- Every capture press gets a record the page can poll until it is saved or failed
- Errors are terminal for their operation, logged once, and surfaced through health
"""

import threading
import uuid
from collections import OrderedDict
from dataclasses import dataclass, replace
from enum import Enum, auto
from pathlib import Path
from typing import Optional, Tuple

from loguru import logger

from controller.camera_base import Camera
from controller.capture_session import CaptureResult, CaptureSession, SessionState
from controller.capture_settings import DEFAULT_MAX_DIMENSIONS
from controller.errors import CaptureError, ConfigurationError, ErrorCode, SaveFailed, SnapboxError
from controller.health import HealthCode, HealthLevel, HealthSource, HealthStatus
from controller.permissions import CameraAuthority, PermissionGate, PermissionOutcome
from controller.ui_context import UiContext
from imaging.photo_library import PhotoLibrary
from imaging.preview import PreviewSurface


class ControllerState(Enum):
    IDLE = auto()
    AWAITING_PERMISSION = auto()
    PERMISSION_DENIED = auto()
    CONFIGURING = auto()
    STARTING = auto()
    RUNNING = auto()
    UNAVAILABLE = auto()


class CaptureStatus(Enum):
    PENDING = auto()
    SAVED = auto()
    FAILED = auto()


@dataclass(frozen=True)
class CaptureRecord:
    request_id: str
    status: CaptureStatus = CaptureStatus.PENDING
    path: Optional[Path] = None
    error_code: Optional[ErrorCode] = None
    message: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "status": self.status.name,
            "filename": self.path.name if self.path else None,
            "error": self.error_code.name if self.error_code else None,
            "message": self.message,
        }


INSTRUCTIONS = {
    HealthCode.PERMISSION_DENIED: [
        "Grant this process access to the camera device",
        "Restart snapbox after changing the permission",
    ],
    HealthCode.DEVICE_UNAVAILABLE: [
        "Check that a camera is connected",
        "Check the USB cable",
    ],
    HealthCode.INPUT_CREATION_FAILED: [
        "Close other applications using the camera",
        "Reconnect the camera and restart snapbox",
    ],
    HealthCode.CONFIGURATION_FAILED: [
        "Reconnect the camera and restart snapbox",
    ],
    HealthCode.LIVE_VIEW_FAILED: [
        "Check that the camera is still connected",
    ],
    HealthCode.CAPTURE_FAILED: [
        "Try taking the photo again",
    ],
    HealthCode.IMAGE_EXTRACTION_FAILED: [
        "Try taking the photo again",
    ],
    HealthCode.SAVE_FAILED: [
        "Check free space in the photo library folder",
        "Check that the photo library folder is writable",
    ],
    HealthCode.UNKNOWN: [
        "Restart snapbox",
    ],
}


class CameraController:
    # Oldest records are dropped once this many are kept
    MAX_CAPTURE_RECORDS = 100

    def __init__(
            self,
            camera: Camera,
            library: PhotoLibrary,
            authority: CameraAuthority,
            *,
            max_dimensions: Tuple[int, int] = DEFAULT_MAX_DIMENSIONS,
            frame_interval: float = 1 / 15,
    ):
        self.camera = camera
        self.library = library
        self.gate = PermissionGate(authority)

        self._state_lock = threading.Lock()
        self.state = ControllerState.IDLE

        # Execution contexts
        self.ui = UiContext()
        self.session = CaptureSession(
            max_dimensions=max_dimensions,
            frame_interval=frame_interval,
            on_stream_error=self._on_stream_error,
            on_running=self._on_session_running,
        )
        self.preview = PreviewSurface(self.session)

        # Capture bookkeeping
        self._captures_lock = threading.Lock()
        self._captures: "OrderedDict[str, CaptureRecord]" = OrderedDict()

        # Health
        self._health_lock = threading.Lock()
        self._health_status = HealthStatus.ok()

    # ---------- Lifecycle ----------

    def start(self) -> None:
        self.ui.start()
        self.ui.dispatch(self.setup)

    def stop(self) -> None:
        self.session.close()
        self.ui.stop()

    # ---------- Public API ----------

    def setup(self) -> None:
        """Resolve permission, then configure and start the camera. Runs on the UI context."""
        outcome = self.gate.check_and_request(self._on_permission_resolved)

        if outcome == PermissionOutcome.GRANTED:
            self._setup_camera()
        elif outcome == PermissionOutcome.PENDING:
            self._set_state(ControllerState.AWAITING_PERMISSION)
        else:
            self._permission_denied()

    def capture_photo(self) -> CaptureRecord:
        """Request one photo. The returned record starts PENDING; poll get_capture()."""
        request_id = uuid.uuid4().hex
        record = CaptureRecord(request_id=request_id)
        with self._captures_lock:
            self._captures[request_id] = record
            while len(self._captures) > self.MAX_CAPTURE_RECORDS:
                self._captures.popitem(last=False)

        future = self.session.capture_photo(request_id)
        future.add_done_callback(lambda f: self.ui.dispatch(self._on_capture_complete, request_id, f))
        return record

    def get_capture(self, request_id: str) -> Optional[CaptureRecord]:
        with self._captures_lock:
            return self._captures.get(request_id)

    def get_status(self) -> dict:
        with self._state_lock:
            state = self.state
        session_state = self.session.state
        return {
            "state": state.name,
            "session_state": session_state.name,
            "permission": self.gate.authority.authorization_status().value,
            "ready": session_state in (SessionState.RUNNING, SessionState.CAPTURING),
            "captures_in_flight": self.session.captures_in_flight,
        }

    def get_live_view_frame(self) -> Optional[bytes]:
        return self.preview.latest_frame()

    def get_health(self) -> HealthStatus:
        with self._health_lock:
            return self._health_status

    # ---------- Permission + setup (UI context) ----------

    def _on_permission_resolved(self, granted: bool) -> None:
        # Arrives on whichever thread answered the prompt.
        if granted:
            self.ui.dispatch(self._setup_camera)
        else:
            self.ui.dispatch(self._permission_denied)

    def _permission_denied(self) -> None:
        self._set_state(ControllerState.PERMISSION_DENIED)
        self._set_error(
            HealthCode.PERMISSION_DENIED,
            "Camera access denied",
            source=HealthSource.PERMISSION,
            recoverable=False,
        )

    def _setup_camera(self) -> None:
        self._set_state(ControllerState.CONFIGURING)
        try:
            self.session.configure(self.camera)
        except ConfigurationError as e:
            self._set_state(ControllerState.UNAVAILABLE)
            self._set_error_from(e, source=HealthSource.CONFIGURATION, recoverable=False)
            return

        # RUNNING is set by the session once the stream is up
        self._set_state(ControllerState.STARTING)
        self.session.start()

    # ---------- Capture completion (UI context) ----------

    def _on_capture_complete(self, request_id: str, future) -> None:
        try:
            result: CaptureResult = future.result()
        except CaptureError as e:
            # Already logged by the session.
            self._fail_capture(request_id, e, source=HealthSource.CAPTURE)
            return

        self._save(result)

    def _save(self, result: CaptureResult) -> None:
        if not self.ui.is_current():
            raise RuntimeError("Photo library saves must run on the UI context")

        try:
            saved = self.library.save(result.data)
        except SaveFailed as e:
            logger.error("Failed to save photo {}: {}", result.request_id, e)
            self._fail_capture(result.request_id, e, source=HealthSource.SAVE)
            return

        self._update_capture(result.request_id, status=CaptureStatus.SAVED, path=saved.path)
        self._clear_error(HealthSource.CAPTURE, HealthSource.SAVE)

    def _fail_capture(self, request_id: str, error: SnapboxError, *, source: HealthSource) -> None:
        self._update_capture(request_id, status=CaptureStatus.FAILED, error_code=error.code, message=str(error))
        self._set_error_from(error, source=source)

    def _update_capture(self, request_id: str, **changes) -> None:
        with self._captures_lock:
            record = self._captures.get(request_id)
            if record is not None:
                self._captures[request_id] = replace(record, **changes)

    # ---------- Session events (session worker) ----------

    def _on_session_running(self) -> None:
        self._set_state(ControllerState.RUNNING)

    def _on_stream_error(self, error: Optional[Exception]) -> None:
        if error is None:
            self._clear_error(HealthSource.LIVE_VIEW)
            return

        with self._state_lock:
            failed_to_start = self.state == ControllerState.STARTING
            if failed_to_start:
                self.state = ControllerState.UNAVAILABLE
        if failed_to_start:
            self._set_error(
                HealthCode.LIVE_VIEW_FAILED,
                f"Camera stream could not start: {error}",
                source=HealthSource.LIVE_VIEW,
                recoverable=False,
            )
            return

        with self._health_lock:
            # Never mask a more specific error with a live view one.
            if self._health_status.level == HealthLevel.ERROR:
                return
            self._health_status = HealthStatus.error(
                code=HealthCode.LIVE_VIEW_FAILED,
                message=f"Camera not responding: {error}",
                instructions=INSTRUCTIONS[HealthCode.LIVE_VIEW_FAILED],
                source=HealthSource.LIVE_VIEW,
            )

    # ---------- Helpers ----------

    def _set_state(self, state: ControllerState) -> None:
        with self._state_lock:
            self.state = state

    def _set_error_from(self, error: SnapboxError, *, source: HealthSource, recoverable: bool = True) -> None:
        self._set_error(
            HealthCode.from_error_code(error.code),
            str(error),
            source=source,
            recoverable=recoverable,
        )

    def _set_error(
            self,
            code: HealthCode,
            message: str,
            *,
            source: HealthSource,
            recoverable: bool = True,
    ) -> None:
        with self._health_lock:
            self._health_status = HealthStatus.error(
                code=code,
                message=message,
                instructions=INSTRUCTIONS[code],
                source=source,
                recoverable=recoverable,
            )

    def _clear_error(self, *sources: HealthSource) -> None:
        with self._health_lock:
            if self._health_status.source in sources:
                self._health_status = HealthStatus.ok()
