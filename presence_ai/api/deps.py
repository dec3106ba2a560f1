from __future__ import annotations

from dataclasses import dataclass
from datetime import tzinfo

from fastapi import HTTPException, Request, status

from presence_ai.config import PresenceSettings
from presence_ai.database import PresenceRepository
from presence_ai.exceptions import InvalidCaptureError
from presence_ai.face_module import FacePipeline, FrameOutcome
from presence_ai.services import AttendanceService, EnrollmentService, GeofenceService, VerificationService
from presence_ai.utils.types import CaptureCandidate

from .schemas import FramePayload


@dataclass
class ServiceContainer:
    settings: PresenceSettings
    tz: tzinfo
    pipeline: FacePipeline
    repository: PresenceRepository
    enrollment: EnrollmentService
    verification: VerificationService
    attendance: AttendanceService
    geofence: GeofenceService


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def capture_candidate(pipeline: FacePipeline, payload: FramePayload) -> CaptureCandidate:
    """Turn an uploaded frame into a capture candidate.

    A client-supplied face box is trusted as-is; otherwise the frame goes
    through the capture throttle and must contain exactly one face.
    """
    try:
        frame = payload.to_raw_frame()
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    region = payload.to_region()
    if region is not None:
        return CaptureCandidate(frame=frame, region=region)

    throttle = pipeline.new_throttle(payload.rotation, payload.front_facing)
    outcome = throttle.submit(frame)
    candidate = throttle.capture(lambda retained: retained)
    if candidate is None:
        if outcome is FrameOutcome.FAILED:
            raise InvalidCaptureError("Frame could not be processed. Please try again.")
        if outcome is FrameOutcome.MULTIPLE_FACES:
            raise InvalidCaptureError("More than one face detected. Please try again.")
        raise InvalidCaptureError("No face detected. Please try again.")
    return candidate
