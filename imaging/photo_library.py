from __future__ import annotations

import io
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Tuple

from loguru import logger
from PIL import Image

from controller.errors import SaveFailed


@dataclass(frozen=True)
class SavedPhoto:
    path: Path
    size: Tuple[int, int]  # (width, height)


class PhotoLibrary:
    """
    Directory-backed photo library.

    Saved files belong to the library from then on; nothing here reads them back.
    """

    def __init__(self, root: Path, jpeg_quality: int = 95):
        self.root = root
        self.jpeg_quality = jpeg_quality

    def save(self, image_bytes: bytes) -> SavedPhoto:
        """Decode `image_bytes` and write them to the library as a JPEG."""
        try:
            img = Image.open(io.BytesIO(image_bytes))
            img.load()
        except (OSError, ValueError) as e:
            raise SaveFailed("Captured data is not a decodable image") from e

        path = self._next_path()
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            img.convert("RGB").save(path, format="JPEG", quality=self.jpeg_quality)
        except OSError as e:
            raise SaveFailed(f"Failed to write photo to {path}: {e}") from e

        logger.info("Saved photo to {}", path)
        return SavedPhoto(path=path, size=img.size)

    def _next_path(self) -> Path:
        stem = datetime.now().strftime("photo_%Y%m%d_%H%M%S_%f")
        path = self.root / f"{stem}.jpg"
        counter = 1
        while path.exists():
            path = self.root / f"{stem}_{counter}.jpg"
            counter += 1
        return path
