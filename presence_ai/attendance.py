"""Daily attendance eligibility.

The geofence monitor holds no notion of days. Whether a subject may file a new
attendance request is decided here from the monitor's ``inside`` flag plus the
subject's timestamped requests, bounded to the current calendar day in the
configured time zone.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone, tzinfo
from enum import Enum
from typing import Iterable, Protocol
from zoneinfo import ZoneInfo


class RequestStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class TimestampedRequest(Protocol):
    status: str
    requested_at: datetime


@dataclass(frozen=True)
class DailyStatus:
    has_pending: bool = False
    is_verified: bool = False

    @property
    def blocks_new_request(self) -> bool:
        return self.has_pending or self.is_verified


def load_timezone(name: str) -> tzinfo:
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def as_aware(moment: datetime) -> datetime:
    # SQLite drops tzinfo; stored timestamps are UTC.
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def day_bounds(now: datetime, tz: tzinfo) -> tuple[datetime, datetime]:
    local_day = as_aware(now).astimezone(tz).date()
    start = datetime.combine(local_day, time.min, tzinfo=tz)
    return start, start + timedelta(days=1)


def day_key(moment: datetime, tz: tzinfo) -> str:
    return as_aware(moment).astimezone(tz).date().isoformat()


def daily_status(requests: Iterable[TimestampedRequest], now: datetime, tz: tzinfo) -> DailyStatus:
    start, end = day_bounds(now, tz)
    has_pending = False
    is_verified = False
    for request in requests:
        if request.requested_at is None:
            continue
        requested_at = as_aware(request.requested_at)
        if not start <= requested_at < end:
            continue
        status = RequestStatus(request.status)
        if status is RequestStatus.PENDING:
            has_pending = True
        elif status is RequestStatus.VERIFIED:
            is_verified = True
    return DailyStatus(has_pending=has_pending, is_verified=is_verified)


def can_request_attendance(inside: bool | None, status: DailyStatus) -> bool:
    return inside is True and not status.blocks_new_request
