"""
Application configuration.

Every setting can be overridden with a SNAPBOX_* environment variable or a
.env file in the working directory.
"""

from pathlib import Path
from typing import Annotated, Optional, Tuple

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from controller.camera_base import DevicePosition
from controller.capture_settings import DEFAULT_MAX_DIMENSIONS
from controller.permissions import AuthorizationStatus

# "WIDTHxHEIGHT" in the environment; NoDecode keeps pydantic-settings from reading it as JSON
Size = Annotated[Tuple[int, int], NoDecode]


def _default_library_dir() -> Path:
    return Path.home() / "Pictures" / "Snapbox"


class AppConfig(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SNAPBOX_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_ignore_empty=True,
        extra="ignore",
        frozen=True,
    )

    # Photo library
    library_dir: Path = Field(default_factory=_default_library_dir, description="Folder saved photos go to")
    jpeg_quality: int = Field(default=95, ge=1, le=100, description="JPEG quality for saved photos")

    # Camera
    camera_position: DevicePosition = Field(
        default=DevicePosition.BACK, description="Position reported for every OpenCV device"
    )
    probe_limit: int = Field(default=10, ge=1, description="Indices probed when no /dev/video* nodes exist")
    device_node: Optional[Path] = Field(default=None, description="Node whose access decides RESTRICTED")
    preview_size: Size = Field(default=(1280, 720), description="Preview stream size")
    max_dimensions: Size = Field(default=DEFAULT_MAX_DIMENSIONS, description="Requested still size")
    fps: float = Field(default=15.0, gt=0, description="Preview frames per second")
    permission: AuthorizationStatus = Field(
        default=AuthorizationStatus.NOT_DETERMINED, description="Camera authorization at start-up"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Console log level")
    log_dir: Optional[Path] = Field(default=None, description="Folder for rotating log files")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, ge=1, le=65535, description="Server port")

    @field_validator("preview_size", "max_dimensions", mode="before")
    @classmethod
    def _parse_size(cls, value):
        if not isinstance(value, str):
            return value
        try:
            width, height = value.lower().split("x")
            return int(width), int(height)
        except ValueError as e:
            raise ValueError(f"Invalid size {value!r}, expected WIDTHxHEIGHT") from e

    @field_validator("preview_size", "max_dimensions")
    @classmethod
    def _positive_size(cls, value: Tuple[int, int]) -> Tuple[int, int]:
        width, height = value
        if width <= 0 or height <= 0:
            raise ValueError(f"Invalid size: {width}x{height}")
        return value

    @field_validator("camera_position", "permission", mode="before")
    @classmethod
    def _lowercase(cls, value):
        return value.lower() if isinstance(value, str) else value

    @field_validator("log_level", mode="before")
    @classmethod
    def _uppercase(cls, value):
        return value.upper() if isinstance(value, str) else value

    @field_validator("library_dir", "log_dir")
    @classmethod
    def _expand_user(cls, value: Optional[Path]) -> Optional[Path]:
        return value.expanduser() if value is not None else None

    @property
    def frame_interval(self) -> float:
        return 1 / self.fps

    def to_flask_config(self) -> dict:
        return {
            "PHOTO_LIBRARY": str(self.library_dir),
            "PREVIEW_SIZE": self.preview_size,
            "FRAME_INTERVAL": self.frame_interval,
        }
