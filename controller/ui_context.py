import threading
from queue import Queue, Empty
from typing import Any, Callable

from loguru import logger


class UiContext:
    """
    The single UI-owning execution context.

    One thread drains a task queue. Anything that touches UI-owned resources
    (the photo library included) is handed over with dispatch() and runs here,
    one task at a time.
    """

    def __init__(self, name: str = "ui"):
        self._queue: Queue = Queue()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._running = False

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._thread.start()

    def stop(self, timeout: float = 2.0) -> None:
        self._running = False
        if self._thread.is_alive() and not self.is_current():
            self._thread.join(timeout)

    def is_running(self) -> bool:
        return self._running

    def is_current(self) -> bool:
        return threading.current_thread() is self._thread

    def dispatch(self, fn: Callable[..., Any], *args: Any) -> None:
        self._queue.put((fn, args))

    def _run(self) -> None:
        while self._running:
            try:
                fn, args = self._queue.get(timeout=0.1)
            except Empty:
                continue

            try:
                fn(*args)
            except Exception as e:
                # Keep the UI loop alive.
                logger.exception("UI task {} failed: {}", getattr(fn, "__name__", fn), e)
