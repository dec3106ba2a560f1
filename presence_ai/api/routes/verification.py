from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from presence_ai.api.deps import ServiceContainer, capture_candidate, get_services
from presence_ai.api.schemas import VerificationRequest, VerificationResponse

router = APIRouter(prefix="/verifications", tags=["verification"])


@router.post("", response_model=VerificationResponse)
def verify(payload: VerificationRequest, services: ServiceContainer = Depends(get_services)):
    candidate = capture_candidate(services.pipeline, payload.frame)
    try:
        outcome = services.verification.verify(payload.subject_id, candidate, request_id=payload.request_id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    result = outcome.result
    return VerificationResponse(
        subject_id=outcome.subject_id,
        matched=result.matched,
        distance=result.distance,
        invalid_capture=result.invalid_capture,
        reason=result.reason,
        request_id=outcome.request.id if outcome.request else None,
        request_status=outcome.request.status if outcome.request else None,
    )
