from __future__ import annotations

import base64
import binascii
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from presence_ai.utils.types import FaceRegion, PixelFormat, PositionFix, RawFrame


class PlanePayload(BaseModel):
    data: str = Field(description="Base64-encoded plane bytes")
    row_stride: int = Field(ge=0)
    pixel_stride: int = Field(default=1, ge=1)


class FaceBox(BaseModel):
    left: float
    top: float
    width: float = Field(gt=0)
    height: float = Field(gt=0)


class FramePayload(BaseModel):
    width: int = Field(gt=0, le=8192)
    height: int = Field(gt=0, le=8192)
    pixel_format: str = "unknown"
    planes: list[PlanePayload]
    rotation: int = 0
    front_facing: bool = False
    face: FaceBox | None = None

    def to_raw_frame(self) -> RawFrame:
        buffers = []
        for plane in self.planes:
            try:
                data = base64.b64decode(plane.data, validate=True)
            except (binascii.Error, ValueError) as exc:
                raise ValueError(f"Plane data is not valid base64: {exc}") from exc
            buffers.append((data, plane.row_stride, plane.pixel_stride))
        return RawFrame.capture(self.width, self.height, PixelFormat.parse(self.pixel_format), buffers)

    def to_region(self) -> FaceRegion | None:
        if self.face is None:
            return None
        return FaceRegion(
            left=self.face.left,
            top=self.face.top,
            width=self.face.width,
            height=self.face.height,
            rotation=self.rotation,
            mirrored=self.front_facing,
        )


class EnrollmentRequest(BaseModel):
    subject_id: str = Field(min_length=1, max_length=128)
    frame: FramePayload


class EnrollmentResponse(BaseModel):
    subject_id: str
    embedding_dim: int
    enrolled_at: datetime


class VerificationRequest(BaseModel):
    subject_id: str = Field(min_length=1, max_length=128)
    frame: FramePayload
    request_id: str | None = None


class VerificationResponse(BaseModel):
    subject_id: str
    matched: bool
    distance: float
    invalid_capture: bool
    reason: str | None = None
    request_id: str | None = None
    request_status: str | None = None


class CampusPayload(BaseModel):
    lat: float = Field(ge=-90.0, le=90.0)
    lng: float = Field(ge=-180.0, le=180.0)
    radius: float = Field(gt=0)


class PositionFixPayload(BaseModel):
    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)
    accuracy_m: float | None = Field(default=None, ge=0)
    timestamp: datetime | None = None

    def to_fix(self) -> PositionFix:
        return PositionFix(self.latitude, self.longitude, self.accuracy_m, self.timestamp)


class GeofenceStateResponse(BaseModel):
    subject_id: str
    inside: bool | None
    distance_m: float | None = None
    last_written: bool | None = None
    write_in_flight: bool = False
    entered_at: datetime | None = None
    last_checked_at: datetime | None = None


class AttendanceRequestCreate(BaseModel):
    subject_id: str = Field(min_length=1, max_length=128)
    latitude: float | None = None
    longitude: float | None = None


class AttendanceRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    subject_id: str
    status: str
    requested_at: datetime
    latitude: float | None = None
    longitude: float | None = None
    verified_at: datetime | None = None
    match_distance: float | None = None


class EligibilityResponse(BaseModel):
    subject_id: str
    inside: bool | None
    has_pending: bool
    is_verified: bool
    can_request: bool


class AttendanceRecordResponse(BaseModel):
    subject_id: str
    status: str
