import threading

from controller.capture_session import CaptureSession, SessionState
from controller.live_view_worker import LiveViewWorker
from imaging.preview import PreviewSurface
from tests.fakes.fake_camera import FakeCamera


def test_live_view_worker_start_is_idempotent(monkeypatch):
    session = CaptureSession()
    worker = LiveViewWorker(session)

    thread_created = 0

    class SpyThread:
        def __init__(self, *args, **kwargs):
            nonlocal thread_created
            thread_created += 1

        def start(self):
            pass

    # Patch threading.Thread used inside LiveViewWorker
    monkeypatch.setattr(threading, "Thread", SpyThread)

    # First call should create a thread
    worker.start()
    assert thread_created == 1

    # Second call should early-return and NOT create a thread
    worker.start()
    assert thread_created == 1


def _configured_session(errors):
    session = CaptureSession(on_stream_error=errors.append)
    camera = FakeCamera()
    session.configure(camera)
    return session, camera


def test_worker_marks_session_running_and_publishes_frames(monkeypatch):
    session, camera = _configured_session([])
    preview = PreviewSurface(session)
    worker = LiveViewWorker(session, frame_interval=0)
    worker._running = True

    def one_frame_then_stop():
        worker._running = False
        return b"frame"

    monkeypatch.setattr(session, "_read_frame", one_frame_then_stop)

    # Run synchronously (no threads)
    worker._run()

    assert session.state == SessionState.RUNNING
    assert preview.latest_frame() == b"frame"


def test_transient_failures_are_not_reported(monkeypatch):
    errors = []
    session, camera = _configured_session(errors)
    worker = LiveViewWorker(session, frame_interval=0)
    worker._running = True
    calls = {"n": 0}

    def flaky():
        calls["n"] += 1
        if calls["n"] == 1:
            raise RuntimeError("dropped frame")
        worker._running = False
        return b"frame"

    monkeypatch.setattr(session, "_read_frame", flaky)

    worker._run()

    assert errors == []


def test_persistent_failures_are_reported_once_then_recovery(monkeypatch):
    errors = []
    session, camera = _configured_session(errors)
    worker = LiveViewWorker(session, frame_interval=0)
    worker.LIVE_VIEW_ERROR_AFTER = 0
    worker._running = True
    calls = {"n": 0}

    def failing_then_ok():
        calls["n"] += 1
        if calls["n"] <= 3:
            raise RuntimeError("camera unplugged")
        worker._running = False
        return b"frame"

    monkeypatch.setattr(session, "_read_frame", failing_then_ok)

    worker._run()

    assert len(errors) == 2
    assert isinstance(errors[0], RuntimeError)
    assert errors[1] is None  # recovered


def test_worker_exits_when_stream_cannot_start():
    errors = []
    session, camera = _configured_session(errors)
    camera.connected = False
    worker = LiveViewWorker(session, frame_interval=0)
    worker._running = True

    worker._run()

    assert worker._running is False
    assert session.state == SessionState.READY
    assert len(errors) == 1
