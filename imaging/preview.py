from __future__ import annotations

import io
import threading
from typing import Optional, Tuple, TYPE_CHECKING

from PIL import Image, ImageOps

if TYPE_CHECKING:  # pragma: no cover
    from controller.capture_session import CaptureSession


def fill_frame(img: Image.Image, target_size: Tuple[int, int]) -> Image.Image:
    """Scale `img` to cover `target_size` and crop the overflow, centered.

    Aspect ratio is preserved; nothing is letterboxed.
    """
    target_w, target_h = target_size
    src_w, src_h = img.size

    if src_w <= 0 or src_h <= 0 or target_w <= 0 or target_h <= 0:
        raise ValueError("Invalid frame or view dimensions")

    return ImageOps.fit(img, target_size, method=Image.Resampling.LANCZOS, centering=(0.5, 0.5))


class PreviewSurface:
    """
    Passive surface bound to a session's live stream.

    Keeps the latest frame only. Nothing it holds is read back by the session.
    """

    def __init__(
            self,
            session: Optional["CaptureSession"] = None,
            jpeg_quality: int = 80,
    ):
        self.jpeg_quality = jpeg_quality
        self._lock = threading.Lock()
        self._latest_frame: Optional[bytes] = None
        if session is not None:
            session.add_preview(self)

    def push_frame(self, frame: bytes) -> None:
        with self._lock:
            self._latest_frame = frame

    def latest_frame(self) -> Optional[bytes]:
        with self._lock:
            return self._latest_frame

    def render(self, view_size: Tuple[int, int]) -> Optional[bytes]:
        """Return the latest frame as a JPEG filling `view_size`, or None."""
        frame = self.latest_frame()
        if not frame:
            return None

        img = Image.open(io.BytesIO(frame)).convert("RGB")
        filled = fill_frame(img, view_size)

        out = io.BytesIO()
        filled.save(out, format="JPEG", quality=self.jpeg_quality)
        return out.getvalue()
