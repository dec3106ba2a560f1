from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Any, Mapping

import numpy as np
from sqlalchemy import desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from presence_ai.attendance import RequestStatus, day_bounds, day_key
from presence_ai.exceptions import CampusConfigError, NotEnrolledError, PersistenceError
from presence_ai.geofence_module.monitor import CampusConfig, GeofenceEvent

from .encryption import EmbeddingCrypto
from .models import AttendanceRecord, AttendanceRequest, CampusSetting, FaceTemplate, GeofenceLog


@dataclass(frozen=True)
class RequestView:
    id: str
    subject_id: str
    status: str
    requested_at: datetime
    latitude: float | None
    longitude: float | None
    verified_at: datetime | None
    match_distance: float | None


@dataclass(frozen=True)
class GeofenceView:
    subject_id: str
    inside_campus: bool
    distance_m: float | None
    last_checked_at: datetime
    entered_at: datetime | None


def _request_view(row: AttendanceRequest) -> RequestView:
    return RequestView(
        id=row.id,
        subject_id=row.subject_id,
        status=row.status,
        requested_at=row.requested_at,
        latitude=row.latitude,
        longitude=row.longitude,
        verified_at=row.verified_at,
        match_distance=row.match_distance,
    )


class PresenceRepository:
    def __init__(self, session_factory: sessionmaker[Session], crypto: EmbeddingCrypto):
        self._session_factory = session_factory
        self.crypto = crypto

    # Face templates

    def save_template(self, subject_id: str, embedding: np.ndarray, at: datetime | None = None) -> None:
        vector = np.asarray(embedding, dtype=np.float32).reshape(-1)
        ciphertext = self.crypto.encrypt(vector)
        try:
            with self._session_factory() as db:
                row = db.get(FaceTemplate, subject_id)
                if row is None:
                    row = FaceTemplate(subject_id=subject_id)
                    db.add(row)
                row.embedding_ciphertext = ciphertext
                row.embedding_dim = int(vector.size)
                row.enrolled_at = at or datetime.now(timezone.utc)
                db.commit()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to save face template for {subject_id}: {exc}") from exc

    def load_template(self, subject_id: str) -> np.ndarray:
        try:
            with self._session_factory() as db:
                row = db.get(FaceTemplate, subject_id)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to load face template for {subject_id}: {exc}") from exc
        if row is None:
            raise NotEnrolledError(f"Subject '{subject_id}' has no enrolled face data.")
        return self.crypto.decrypt(row.embedding_ciphertext, row.embedding_dim)

    def is_enrolled(self, subject_id: str) -> bool:
        try:
            with self._session_factory() as db:
                return db.get(FaceTemplate, subject_id) is not None
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to check enrollment for {subject_id}: {exc}") from exc

    # Geofence

    def write_geofence_event(self, event: GeofenceEvent) -> None:
        try:
            with self._session_factory() as db:
                row = db.get(GeofenceLog, event.subject_id)
                if row is None:
                    row = GeofenceLog(subject_id=event.subject_id)
                    db.add(row)
                row.inside_campus = event.inside
                row.distance_m = event.distance_m
                row.last_checked_at = event.at
                if event.entered_at is not None:
                    row.entered_at = event.entered_at
                db.commit()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to write geofence log for {event.subject_id}: {exc}") from exc

    def load_geofence(self, subject_id: str) -> GeofenceView | None:
        try:
            with self._session_factory() as db:
                row = db.get(GeofenceLog, subject_id)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to read geofence log for {subject_id}: {exc}") from exc
        if row is None:
            return None
        return GeofenceView(
            subject_id=row.subject_id,
            inside_campus=row.inside_campus,
            distance_m=row.distance_m,
            last_checked_at=row.last_checked_at,
            entered_at=row.entered_at,
        )

    # Campus configuration

    def load_campus_config(self, fallback: Mapping[str, Any] | None = None) -> CampusConfig:
        try:
            with self._session_factory() as db:
                rows = db.scalars(select(CampusSetting)).all()
        except SQLAlchemyError as exc:
            raise CampusConfigError(f"Failed to load campus configuration: {exc}") from exc
        if rows:
            return CampusConfig.from_mapping({row.key: row.value for row in rows})
        return CampusConfig.from_mapping(fallback)

    def save_campus_config(self, config: CampusConfig) -> None:
        try:
            with self._session_factory() as db:
                for key, value in config.to_mapping().items():
                    db.merge(CampusSetting(key=key, value=value))
                db.commit()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to save campus configuration: {exc}") from exc

    # Attendance requests

    def create_request(
        self,
        subject_id: str,
        requested_at: datetime,
        latitude: float | None = None,
        longitude: float | None = None,
    ) -> RequestView:
        row = AttendanceRequest(
            subject_id=subject_id,
            status=RequestStatus.PENDING.value,
            requested_at=requested_at,
            latitude=latitude,
            longitude=longitude,
        )
        try:
            with self._session_factory() as db:
                db.add(row)
                db.commit()
                return _request_view(row)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to create attendance request for {subject_id}: {exc}") from exc

    def get_request(self, request_id: str) -> RequestView | None:
        try:
            with self._session_factory() as db:
                row = db.get(AttendanceRequest, request_id)
                return _request_view(row) if row is not None else None
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to load attendance request {request_id}: {exc}") from exc

    def requests_for_day(self, subject_id: str, now: datetime, tz: tzinfo) -> list[RequestView]:
        start, end = day_bounds(now, tz)
        query = (
            select(AttendanceRequest)
            .where(
                AttendanceRequest.subject_id == subject_id,
                AttendanceRequest.requested_at >= start.astimezone(timezone.utc),
                AttendanceRequest.requested_at < end.astimezone(timezone.utc),
            )
            .order_by(desc(AttendanceRequest.requested_at))
        )
        return self._select_requests(query)

    def pending_requests(self, limit: int = 200) -> list[RequestView]:
        query = (
            select(AttendanceRequest)
            .where(AttendanceRequest.status == RequestStatus.PENDING.value)
            .order_by(desc(AttendanceRequest.requested_at))
            .limit(max(1, min(1000, limit)))
        )
        return self._select_requests(query)

    def _select_requests(self, query) -> list[RequestView]:
        try:
            with self._session_factory() as db:
                return [_request_view(row) for row in db.scalars(query).all()]
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to query attendance requests: {exc}") from exc

    def mark_verified(self, request_id: str, distance: float, at: datetime, tz: tzinfo) -> RequestView:
        """Mark the request verified and upsert the subject's attendance record for that day."""
        try:
            with self._session_factory() as db:
                row = db.get(AttendanceRequest, request_id)
                if row is None:
                    raise PersistenceError(f"Unknown attendance request '{request_id}'.")
                row.status = RequestStatus.VERIFIED.value
                row.verified_at = at
                row.match_distance = distance

                key = day_key(at, tz)
                record = db.scalar(
                    select(AttendanceRecord).where(
                        AttendanceRecord.date_key == key,
                        AttendanceRecord.subject_id == row.subject_id,
                    )
                )
                if record is None:
                    record = AttendanceRecord(date_key=key, subject_id=row.subject_id)
                    db.add(record)
                record.status = "present"
                record.timestamp = at
                db.commit()
                return _request_view(row)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to mark attendance request {request_id} verified: {exc}") from exc

    def reject_request(self, request_id: str) -> RequestView:
        try:
            with self._session_factory() as db:
                row = db.get(AttendanceRequest, request_id)
                if row is None:
                    raise PersistenceError(f"Unknown attendance request '{request_id}'.")
                row.status = RequestStatus.REJECTED.value
                db.commit()
                return _request_view(row)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to reject attendance request {request_id}: {exc}") from exc

    def attendance_for_day(self, date_key: str) -> list[tuple[str, str]]:
        try:
            with self._session_factory() as db:
                rows = db.scalars(
                    select(AttendanceRecord)
                    .where(AttendanceRecord.date_key == date_key)
                    .order_by(AttendanceRecord.subject_id)
                ).all()
                return [(row.subject_id, row.status) for row in rows]
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to load attendance for {date_key}: {exc}") from exc
