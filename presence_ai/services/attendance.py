from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo

from presence_ai.attendance import DailyStatus, can_request_attendance, daily_status
from presence_ai.database import PresenceRepository, RequestView
from presence_ai.utils.logger import setup_logger


class AttendanceNotAllowedError(ValueError):
    pass


@dataclass(frozen=True)
class Eligibility:
    subject_id: str
    inside: bool | None
    status: DailyStatus

    @property
    def allowed(self) -> bool:
        return can_request_attendance(self.inside, self.status)


class AttendanceService:
    def __init__(self, repository: PresenceRepository, tz: tzinfo = timezone.utc):
        self.repository = repository
        self.tz = tz
        self.logger = setup_logger(self.__class__.__name__)

    def eligibility(self, subject_id: str, inside: bool | None, now: datetime | None = None) -> Eligibility:
        now = now or datetime.now(timezone.utc)
        requests = self.repository.requests_for_day(subject_id, now, self.tz)
        return Eligibility(subject_id=subject_id, inside=inside, status=daily_status(requests, now, self.tz))

    def request_attendance(
        self,
        subject_id: str,
        inside: bool | None,
        latitude: float | None = None,
        longitude: float | None = None,
        now: datetime | None = None,
    ) -> RequestView:
        now = now or datetime.now(timezone.utc)
        check = self.eligibility(subject_id, inside, now)
        if not check.allowed:
            if inside is not True:
                raise AttendanceNotAllowedError("You must be inside the campus to request attendance.")
            if check.status.is_verified:
                raise AttendanceNotAllowedError("Attendance is already verified for today.")
            raise AttendanceNotAllowedError("An attendance request is already pending for today.")

        request = self.repository.create_request(subject_id, now, latitude=latitude, longitude=longitude)
        self.logger.info(
            "Attendance request %s created for %s",
            request.id,
            subject_id,
            extra={"event": "attendance_request", "subject_id": subject_id},
        )
        return request

    def pending_for_today(self, now: datetime | None = None) -> list[RequestView]:
        now = now or datetime.now(timezone.utc)
        return [
            request
            for request in self.repository.pending_requests()
            if daily_status([request], now, self.tz).has_pending
        ]

    def reject(self, request_id: str) -> RequestView:
        request = self.repository.get_request(request_id)
        if request is None:
            raise LookupError(f"Unknown attendance request '{request_id}'.")
        rejected = self.repository.reject_request(request_id)
        self.logger.info("Attendance request %s rejected", request_id, extra={"event": "attendance_reject"})
        return rejected
