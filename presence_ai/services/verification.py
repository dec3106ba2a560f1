from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo

from presence_ai.attendance import RequestStatus
from presence_ai.database import PresenceRepository, RequestView
from presence_ai.exceptions import InvalidCaptureError
from presence_ai.face_module import FacePipeline, MatchResult
from presence_ai.utils.logger import setup_logger
from presence_ai.utils.types import CaptureCandidate


@dataclass(frozen=True)
class VerificationOutcome:
    subject_id: str
    result: MatchResult
    request: RequestView | None = None


class VerificationService:
    """Compare a live capture with the subject's template.

    Persistence is touched only on a match: the subject's pending request for
    today (or the one named explicitly) is marked verified.
    """

    def __init__(self, pipeline: FacePipeline, repository: PresenceRepository, tz: tzinfo = timezone.utc):
        self.pipeline = pipeline
        self.repository = repository
        self.tz = tz
        self.logger = setup_logger(self.__class__.__name__)

    def verify(
        self,
        subject_id: str,
        candidate: CaptureCandidate,
        request_id: str | None = None,
        now: datetime | None = None,
    ) -> VerificationOutcome:
        now = now or datetime.now(timezone.utc)
        enrolled = self.repository.load_template(subject_id)
        result = self.pipeline.verify(candidate, enrolled)

        if result.reason == "zero_candidate":
            raise InvalidCaptureError("Invalid face capture. Please try again.")
        if result.invalid_capture:
            self.logger.warning(
                "Stored template for %s is unusable (%s); re-enrollment required",
                subject_id,
                result.reason,
                extra={"event": "verify", "subject_id": subject_id},
            )
        if not result.matched:
            return VerificationOutcome(subject_id=subject_id, result=result)

        request = self._pending_request(subject_id, request_id, now)
        if request is None:
            self.logger.info("Face matched for %s with no pending request to verify", subject_id)
            return VerificationOutcome(subject_id=subject_id, result=result)

        verified = self.repository.mark_verified(request.id, result.distance, now, self.tz)
        self.logger.info(
            "Attendance request %s verified for %s",
            verified.id,
            subject_id,
            extra={"event": "verify", "subject_id": subject_id},
        )
        return VerificationOutcome(subject_id=subject_id, result=result, request=verified)

    def _pending_request(self, subject_id: str, request_id: str | None, now: datetime) -> RequestView | None:
        if request_id is not None:
            request = self.repository.get_request(request_id)
            if request is None or request.subject_id != subject_id:
                raise ValueError(f"Unknown attendance request '{request_id}' for subject '{subject_id}'.")
            if request.status != RequestStatus.PENDING.value:
                raise ValueError(f"Attendance request '{request_id}' is already {request.status}.")
            return request

        for request in self.repository.requests_for_day(subject_id, now, self.tz):
            if request.status == RequestStatus.PENDING.value:
                return request
        return None
