from __future__ import annotations

from fastapi import APIRouter, Depends

from presence_ai.api.deps import ServiceContainer, get_services
from presence_ai.api.schemas import CampusPayload
from presence_ai.geofence_module import CampusConfig

router = APIRouter(prefix="/campus", tags=["campus"])


@router.get("", response_model=CampusPayload)
def get_campus(services: ServiceContainer = Depends(get_services)):
    return CampusPayload(**services.geofence.campus_config().to_mapping())


@router.put("", response_model=CampusPayload)
def put_campus(payload: CampusPayload, services: ServiceContainer = Depends(get_services)):
    config = CampusConfig.from_mapping(payload.model_dump())
    services.geofence.update_campus(config)
    return CampusPayload(**config.to_mapping())
