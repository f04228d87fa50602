import threading
import time
from typing import Optional, TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:  # pragma: no cover
    from controller.capture_session import CaptureSession


class LiveViewWorker:
    """
    Owns the session's streaming pipeline on one dedicated thread.

    IMPORTANT:
    - The session remains the single source of truth for state.
    - Frames only flow out to the bound preview surfaces; nothing flows back.
    """

    # How long frame reads must keep failing before the error is reported
    LIVE_VIEW_ERROR_AFTER = 2.5  # seconds

    def __init__(self, session: "CaptureSession", frame_interval: float = 1 / 15):
        self._session = session
        self._frame_interval = frame_interval
        self._thread: Optional[threading.Thread] = None
        self._running = False

        # Debounce for transient read failures
        self._live_view_failure_since: Optional[float] = None
        self._failure_reported = False

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._thread = threading.Thread(target=self._run, name="camera-session", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 2.0) -> None:
        self._running = False
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def _run(self) -> None:
        if not self._session._start_running():
            self._running = False
            return

        while self._running:
            now = time.monotonic()
            try:
                frame = self._session._read_frame()
                self._session._publish_frame(frame)

                if self._failure_reported:
                    logger.info("Live view recovered")
                    self._session._report_stream_error(None)
                self._live_view_failure_since = None
                self._failure_reported = False

            except Exception as e:
                if self._live_view_failure_since is None:
                    self._live_view_failure_since = now

                # Only report if failures persist
                if not self._failure_reported and (
                        now - self._live_view_failure_since
                ) >= self.LIVE_VIEW_ERROR_AFTER:
                    self._failure_reported = True
                    logger.error("Live view not responding: {}", e)
                    self._session._report_stream_error(e)

            time.sleep(self._frame_interval)
