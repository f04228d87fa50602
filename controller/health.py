from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum, auto
from typing import List, Optional

from controller.errors import ErrorCode


class HealthLevel(Enum):
    OK = auto()
    WARNING = auto()
    ERROR = auto()


class HealthCode(Enum):
    PERMISSION_DENIED = auto()
    DEVICE_UNAVAILABLE = auto()
    INPUT_CREATION_FAILED = auto()
    CONFIGURATION_FAILED = auto()
    LIVE_VIEW_FAILED = auto()
    CAPTURE_FAILED = auto()
    IMAGE_EXTRACTION_FAILED = auto()
    SAVE_FAILED = auto()
    UNKNOWN = auto()

    @classmethod
    def from_error_code(cls, code: ErrorCode) -> "HealthCode":
        return cls[code.name]


class HealthSource(Enum):
    PERMISSION = auto()
    CONFIGURATION = auto()
    LIVE_VIEW = auto()
    CAPTURE = auto()
    SAVE = auto()


@dataclass(frozen=True)
class HealthStatus:
    level: HealthLevel
    code: Optional[HealthCode] = None
    message: Optional[str] = None
    instructions: List[str] | None = None
    recoverable: bool = True
    source: Optional[HealthSource] = None
    last_updated: datetime = field(default_factory=lambda: datetime.now(UTC))

    @staticmethod
    def ok() -> "HealthStatus":
        return HealthStatus(level=HealthLevel.OK)

    @staticmethod
    def error(
            *,
            code: HealthCode,
            message: str,
            instructions: List[str],
            source: HealthSource,
            recoverable: bool = True,
    ) -> "HealthStatus":
        return HealthStatus(
            level=HealthLevel.ERROR,
            code=code,
            message=message,
            instructions=instructions,
            recoverable=recoverable,
            source=source,
        )

    def to_dict(self) -> dict:
        if self.level == HealthLevel.OK:
            return {"level": "OK"}

        return {
            "level": self.level.name,
            "code": self.code.name if self.code else None,
            "message": self.message,
            "instructions": self.instructions,
            "recoverable": self.recoverable,
            "source": self.source.name if self.source else None,
        }
