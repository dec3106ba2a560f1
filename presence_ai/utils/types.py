from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable

import numpy as np


class PixelFormat(str, Enum):
    NV21 = "nv21"
    YUV420 = "yuv420"
    BGRA8888 = "bgra8888"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: str | None) -> "PixelFormat":
        if not raw:
            return cls.UNKNOWN
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class FramePlane:
    data: bytes
    row_stride: int
    pixel_stride: int = 1


@dataclass(frozen=True)
class RawFrame:
    """A camera frame whose plane bytes are owned by this object.

    Camera callbacks recycle their buffers once control returns to them, so
    every constructor here copies the incoming buffers into immutable bytes.
    """

    width: int
    height: int
    pixel_format: PixelFormat
    planes: tuple[FramePlane, ...]

    @classmethod
    def capture(
        cls,
        width: int,
        height: int,
        pixel_format: PixelFormat | str,
        buffers: Iterable[tuple],
    ) -> "RawFrame":
        """Copy externally owned ``(buffer, row_stride[, pixel_stride])`` tuples."""
        planes = []
        for entry in buffers:
            buffer, row_stride = entry[0], entry[1]
            pixel_stride = entry[2] if len(entry) > 2 else 1
            planes.append(FramePlane(bytes(buffer), int(row_stride), int(pixel_stride)))
        if not isinstance(pixel_format, PixelFormat):
            pixel_format = PixelFormat.parse(pixel_format)
        return cls(width=int(width), height=int(height), pixel_format=pixel_format, planes=tuple(planes))

    @classmethod
    def from_bgr(cls, frame_bgr: np.ndarray) -> "RawFrame":
        height, width = frame_bgr.shape[:2]
        alpha = np.full((height, width, 1), 255, dtype=np.uint8)
        bgra = np.ascontiguousarray(np.concatenate([frame_bgr.astype(np.uint8), alpha], axis=2))
        return cls(
            width=width,
            height=height,
            pixel_format=PixelFormat.BGRA8888,
            planes=(FramePlane(bgra.tobytes(), row_stride=width * 4, pixel_stride=4),),
        )


@dataclass(frozen=True)
class FaceRegion:
    left: float
    top: float
    width: float
    height: float
    rotation: int = 0
    mirrored: bool = False

    @property
    def area(self) -> float:
        return max(0.0, self.width) * max(0.0, self.height)


@dataclass(frozen=True)
class CaptureCandidate:
    frame: RawFrame
    region: FaceRegion
    captured_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class PositionFix:
    latitude: float
    longitude: float
    accuracy_m: float | None = None
    timestamp: datetime | None = None

