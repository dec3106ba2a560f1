from __future__ import annotations

from fastapi import APIRouter, Depends

from presence_ai.api.deps import ServiceContainer, get_services
from presence_ai.api.schemas import GeofenceStateResponse, PositionFixPayload

router = APIRouter(prefix="/geofence", tags=["geofence"])


@router.post("/{subject_id}/fixes", response_model=GeofenceStateResponse)
def post_fix(subject_id: str, payload: PositionFixPayload, services: ServiceContainer = Depends(get_services)):
    monitor = services.geofence.monitor_for(subject_id)
    state = monitor.handle_fix(payload.to_fix())
    return GeofenceStateResponse(
        subject_id=subject_id,
        inside=state.inside,
        distance_m=state.last_distance_m,
        last_written=monitor.state.last_written,
        write_in_flight=monitor.write_in_flight,
    )


@router.get("/{subject_id}", response_model=GeofenceStateResponse)
def get_state(subject_id: str, services: ServiceContainer = Depends(get_services)):
    persisted = services.repository.load_geofence(subject_id)
    if persisted is None:
        return GeofenceStateResponse(subject_id=subject_id, inside=None)
    return GeofenceStateResponse(
        subject_id=subject_id,
        inside=persisted.inside_campus,
        distance_m=persisted.distance_m,
        last_written=persisted.inside_campus,
        entered_at=persisted.entered_at,
        last_checked_at=persisted.last_checked_at,
    )
