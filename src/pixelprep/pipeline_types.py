from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Optional


class StepStatus(Enum):
    COMPLETED = "completed"
    SKIPPED = "skipped"
    DEGRADED = "degraded"
    FAILED = "failed"


class PipelineStage(Enum):
    PROBING = "probing"
    DECODING = "decoding"
    NORMALIZING = "normalizing"
    RESIZING = "resizing"
    ENCODING = "encoding"
    DONE = "done"


class OrientationCode(IntEnum):
    """EXIF orientation tag values (0x0112)."""

    NORMAL = 1
    FLIP_HORIZONTAL = 2
    ROTATE_180 = 3
    FLIP_VERTICAL = 4
    TRANSPOSE = 5
    ROTATE_90 = 6
    TRANSVERSE = 7
    ROTATE_270 = 8

    @classmethod
    def from_exif(cls, value: Any) -> "OrientationCode":
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            return cls.NORMAL


@dataclass(frozen=True)
class ImageBounds:
    width: int
    height: int

    @property
    def is_valid(self) -> bool:
        return self.width > 0 and self.height > 0


@dataclass
class StepResult:
    status: StepStatus
    data: dict[str, Any]
    error: Optional[str] = None


@dataclass
class PipelineResult:
    """Output of a single pipeline invocation."""

    data: bytes
    width: int
    height: int
    orientation: OrientationCode = OrientationCode.NORMAL
    sample_size: int = 1
    degraded: list[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.data)


class CancellationToken:
    """Thread-safe flag checked by the pipeline between steps."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()
