"""
Capture session

Owns the camera input, the photo output and the streaming pipeline.

Goals:
- configure() is all-or-nothing: a failed attempt leaves no input or output wired
- start() never blocks the caller; streaming runs on the session's own worker thread
- every capture_photo() call gets exactly one completion, delivered off the caller's thread
- overlapping captures are allowed and independent (burst); completion order is not guaranteed
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, List, Optional, Tuple, TYPE_CHECKING

from loguru import logger

from controller.camera_base import Camera, CameraDevice, CameraInput, DevicePosition, DeviceType
from controller.capture_settings import CaptureSettings, DEFAULT_MAX_DIMENSIONS
from controller.errors import (
    CaptureError,
    CaptureFailed,
    ConfigurationError,
    ConfigurationFailed,
    DeviceUnavailable,
    ImageExtractionFailed,
    InputCreationError,
)
from controller.live_view_worker import LiveViewWorker

if TYPE_CHECKING:  # pragma: no cover
    from imaging.preview import PreviewSurface

PhotoHandler = Callable[[Optional[bytes], Optional[Exception]], None]


class SessionState(Enum):
    UNCONFIGURED = auto()
    CONFIGURING = auto()
    READY = auto()
    RUNNING = auto()
    CAPTURING = auto()


@dataclass(frozen=True)
class CaptureResult:
    request_id: str
    data: bytes
    settings: CaptureSettings


class PhotoOutput:
    """
    Produces discrete stills, separate from the continuous preview stream.

    Completions are delivered on the output's own threads, never on the caller's.
    """

    def __init__(self, max_workers: int = 2):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="photo-output")
        self.session: Optional["CaptureSession"] = None
        self._input: Optional[CameraInput] = None

    def _attach(self, session: "CaptureSession", camera_input: CameraInput) -> None:
        self.session = session
        self._input = camera_input

    def _detach(self) -> None:
        self.session = None
        self._input = None

    def capture_photo(self, settings: CaptureSettings, handler: PhotoHandler) -> None:
        self._executor.submit(self._process, settings, handler)

    def fail(self, error: Exception, handler: PhotoHandler) -> None:
        self._executor.submit(handler, None, error)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)

    def _process(self, settings: CaptureSettings, handler: PhotoHandler) -> None:
        camera_input = self._input
        if camera_input is None:
            handler(None, CaptureFailed("Photo output is not connected to an input"))
            return
        try:
            data = camera_input.capture_still(settings)
        except Exception as e:
            handler(None, e)
            return
        handler(data, None)


class CaptureSession:
    def __init__(
            self,
            max_dimensions: Tuple[int, int] = DEFAULT_MAX_DIMENSIONS,
            frame_interval: float = 1 / 15,
            on_stream_error: Optional[Callable[[Optional[Exception]], None]] = None,
            on_running: Optional[Callable[[], None]] = None,
    ):
        self._state_lock = threading.Lock()
        self._state = SessionState.UNCONFIGURED
        self._in_flight = 0

        self.max_dimensions = max_dimensions
        self.device: Optional[CameraDevice] = None
        self._input: Optional[CameraInput] = None
        self.output = PhotoOutput()

        self._previews: List["PreviewSurface"] = []
        self._on_stream_error = on_stream_error
        self._on_running = on_running
        self._worker = LiveViewWorker(session=self, frame_interval=frame_interval)

    # ---------- Public API ----------

    @property
    def state(self) -> SessionState:
        with self._state_lock:
            return self._state

    @property
    def captures_in_flight(self) -> int:
        with self._state_lock:
            return self._in_flight

    @property
    def input(self) -> Optional[CameraInput]:
        return self._input

    def add_preview(self, surface: "PreviewSurface") -> None:
        self._previews.append(surface)

    def can_add_input(self, camera_input: CameraInput) -> bool:
        return self._input is None and camera_input.is_open

    def can_add_output(self, output: PhotoOutput, camera_input: CameraInput) -> bool:
        return output.session is None and camera_input.supports_still_capture

    def configure(self, camera: Camera) -> CameraDevice:
        """
        Select the back wide-angle camera and wire its input to the photo output.

        Raises DeviceUnavailable, InputCreationError or ConfigurationFailed. On
        failure nothing is committed and the session stays unconfigured.
        """
        with self._state_lock:
            if self._state != SessionState.UNCONFIGURED:
                raise ConfigurationFailed(f"Session is already configured ({self._state.name})")
            self._state = SessionState.CONFIGURING

        camera_input = None
        try:
            device = self._select_device(camera)
            camera_input = self._open_input(camera, device)

            if not self.can_add_input(camera_input):
                raise ConfigurationFailed(
                    f"Cannot add input for {device.name} to the session",
                    device_id=device.identifier,
                )
            if not self.can_add_output(self.output, camera_input):
                raise ConfigurationFailed(
                    f"Cannot add photo output for {device.name} to the session",
                    device_id=device.identifier,
                )

        except ConfigurationError as e:
            if camera_input is not None:
                camera_input.close()
            with self._state_lock:
                self._state = SessionState.UNCONFIGURED
            logger.error("Failed to set up device input or output: {}", e)
            raise

        # Commit
        with self._state_lock:
            self.device = device
            self._input = camera_input
            self.output._attach(self, camera_input)
            self._state = SessionState.READY

        logger.info("Capture session configured with {} ({})", device.name, device.identifier)
        return device

    def start(self) -> None:
        """Start streaming on the session worker. Returns immediately."""
        with self._state_lock:
            if self._state == SessionState.UNCONFIGURED or self._state == SessionState.CONFIGURING:
                raise ConfigurationFailed("Cannot start an unconfigured session")
        self._worker.start()

    def stop(self) -> None:
        self._worker.stop()
        with self._state_lock:
            camera_input = self._input
            if self._state in (SessionState.RUNNING, SessionState.CAPTURING):
                self._state = SessionState.READY
        if camera_input is not None:
            try:
                camera_input.stop_streaming()
            except Exception as e:
                logger.warning("Error stopping camera stream: {}", e)

    def close(self) -> None:
        self.stop()
        with self._state_lock:
            camera_input = self._input
            self._input = None
            self.device = None
            self.output._detach()
            self._state = SessionState.UNCONFIGURED
        if camera_input is not None:
            camera_input.close()
        self.output.shutdown()

    def capture_photo(self, request_id: str) -> "Future[CaptureResult]":
        """
        Request one still.

        The returned future resolves to a CaptureResult or fails with a
        CaptureError. It never completes before this call returns.
        """
        future: "Future[CaptureResult]" = Future()

        with self._state_lock:
            running = self._state in (SessionState.RUNNING, SessionState.CAPTURING)
            if running:
                self._in_flight += 1
                self._state = SessionState.CAPTURING
            camera_input = self._input

        # Fresh settings per request
        supports_dimensions = camera_input.supports_max_dimensions if camera_input is not None else True
        settings = CaptureSettings.for_still(supports_dimensions, self.max_dimensions)

        def handler(data: Optional[bytes], error: Optional[Exception]) -> None:
            self._complete_capture(request_id, settings, future, running, data, error)

        if not running:
            self.output.fail(CaptureFailed("Capture session is not running"), handler)
        else:
            self.output.capture_photo(settings, handler)
        return future

    # ---------- Capture completion ----------

    def _complete_capture(
            self,
            request_id: str,
            settings: CaptureSettings,
            future: "Future[CaptureResult]",
            tracked: bool,
            data: Optional[bytes],
            error: Optional[Exception],
    ) -> None:
        outcome: Optional[CaptureResult] = None
        failure: Optional[CaptureError] = None

        if error is not None:
            logger.error("Error capturing photo {}: {}", request_id, error)
            failure = error if isinstance(error, CaptureError) else CaptureFailed(f"Error capturing photo: {error}")
        elif not data:
            logger.error("Failed to get image data for photo {}", request_id)
            failure = ImageExtractionFailed("Failed to get image data")
        else:
            logger.info("Captured photo {} with size: {} bytes", request_id, len(data))
            outcome = CaptureResult(request_id=request_id, data=data, settings=settings)

        if tracked:
            with self._state_lock:
                self._in_flight -= 1
                if self._in_flight == 0 and self._state == SessionState.CAPTURING:
                    self._state = SessionState.RUNNING

        if failure is not None:
            future.set_exception(failure)
        else:
            future.set_result(outcome)

    # ---------- Internal helpers used by the worker ----------

    def _select_device(self, camera: Camera) -> CameraDevice:
        try:
            device = camera.default_device(DeviceType.WIDE_ANGLE, DevicePosition.BACK)
        except Exception as e:
            raise DeviceUnavailable(f"Camera discovery failed: {e}") from e
        if device is None:
            raise DeviceUnavailable("No back-facing wide-angle camera found")
        return device

    def _open_input(self, camera: Camera, device: CameraDevice) -> CameraInput:
        try:
            return camera.open_input(device)
        except InputCreationError:
            raise
        except Exception as e:
            raise InputCreationError(
                f"Could not open {device.name}: {e}",
                device_id=device.identifier,
            ) from e

    def _start_running(self) -> bool:
        with self._state_lock:
            camera_input = self._input
        if camera_input is None:
            logger.error("Capture session lost its input before starting")
            return False

        try:
            camera_input.start_streaming()
        except Exception as e:
            logger.error("Failed to start camera stream: {}", e)
            self._report_stream_error(e)
            return False

        with self._state_lock:
            started = self._state == SessionState.READY
            if started:
                self._state = SessionState.RUNNING
        logger.info("Capture session running")
        if started and self._on_running is not None:
            self._on_running()
        return True

    def _read_frame(self) -> bytes:
        camera_input = self._input
        if camera_input is None:
            raise CaptureFailed("Capture session has no input")
        return camera_input.read_frame()

    def _publish_frame(self, frame: bytes) -> None:
        for surface in self._previews:
            surface.push_frame(frame)

    def _report_stream_error(self, error: Optional[Exception]) -> None:
        if self._on_stream_error is not None:
            self._on_stream_error(error)
