from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, status

from presence_ai.api.deps import ServiceContainer, get_services
from presence_ai.api.schemas import (
    AttendanceRecordResponse,
    AttendanceRequestCreate,
    AttendanceRequestResponse,
    EligibilityResponse,
)
from presence_ai.services import AttendanceNotAllowedError

router = APIRouter(prefix="/attendance", tags=["attendance"])


@router.post("/requests", response_model=AttendanceRequestResponse, status_code=status.HTTP_201_CREATED)
def create_request(payload: AttendanceRequestCreate, services: ServiceContainer = Depends(get_services)):
    inside = services.geofence.is_inside(payload.subject_id)
    try:
        return services.attendance.request_attendance(
            payload.subject_id,
            inside,
            latitude=payload.latitude,
            longitude=payload.longitude,
        )
    except AttendanceNotAllowedError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc


@router.get("/requests/pending", response_model=list[AttendanceRequestResponse])
def pending_requests(services: ServiceContainer = Depends(get_services)):
    return services.attendance.pending_for_today()


@router.post("/requests/{request_id}/reject", response_model=AttendanceRequestResponse)
def reject_request(request_id: str, services: ServiceContainer = Depends(get_services)):
    try:
        return services.attendance.reject(request_id)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.get("/{subject_id}/today", response_model=EligibilityResponse)
def today(subject_id: str, services: ServiceContainer = Depends(get_services)):
    check = services.attendance.eligibility(subject_id, services.geofence.is_inside(subject_id))
    return EligibilityResponse(
        subject_id=subject_id,
        inside=check.inside,
        has_pending=check.status.has_pending,
        is_verified=check.status.is_verified,
        can_request=check.allowed,
    )


@router.get("/records/{day}", response_model=list[AttendanceRecordResponse])
def records_for_day(day: date, services: ServiceContainer = Depends(get_services)):
    rows = services.repository.attendance_for_day(day.isoformat())
    return [AttendanceRecordResponse(subject_id=subject_id, status=row_status) for subject_id, row_status in rows]
