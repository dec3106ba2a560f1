from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from presence_ai.api.deps import ServiceContainer, capture_candidate, get_services
from presence_ai.api.schemas import EnrollmentRequest, EnrollmentResponse

router = APIRouter(prefix="/enrollments", tags=["enrollment"])


@router.post("", response_model=EnrollmentResponse, status_code=status.HTTP_201_CREATED)
def enroll(payload: EnrollmentRequest, services: ServiceContainer = Depends(get_services)):
    candidate = capture_candidate(services.pipeline, payload.frame)
    try:
        result = services.enrollment.enroll(payload.subject_id, candidate)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return EnrollmentResponse(
        subject_id=result.subject_id,
        embedding_dim=result.embedding_dim,
        enrolled_at=result.enrolled_at,
    )


@router.get("/{subject_id}")
def enrollment_status(subject_id: str, services: ServiceContainer = Depends(get_services)) -> dict:
    return {"subject_id": subject_id, "enrolled": services.repository.is_enrolled(subject_id)}
