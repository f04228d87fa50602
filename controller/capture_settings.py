from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

# 12MP, 4:3
DEFAULT_MAX_DIMENSIONS = (4032, 3024)


class FlashMode(Enum):
    OFF = "off"
    ON = "on"
    AUTO = "auto"


@dataclass(frozen=True)
class CaptureSettings:
    """Per-capture parameters. Built fresh for every request, never reused."""

    flash_mode: FlashMode = FlashMode.AUTO
    max_dimensions: Optional[Tuple[int, int]] = None  # (width, height)
    high_resolution: bool = False

    @classmethod
    def for_still(
            cls,
            supports_max_dimensions: bool,
            max_dimensions: Tuple[int, int] = DEFAULT_MAX_DIMENSIONS,
    ) -> "CaptureSettings":
        # Inputs without per-pixel control only get the generic high resolution flag.
        if supports_max_dimensions:
            return cls(flash_mode=FlashMode.AUTO, max_dimensions=max_dimensions)
        return cls(flash_mode=FlashMode.AUTO, high_resolution=True)
