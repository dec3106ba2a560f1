from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from presence_ai.api.deps import ServiceContainer, get_services

router = APIRouter(tags=["health"])


@router.get("/health")
def health(services: ServiceContainer = Depends(get_services)) -> dict:
    return {
        "ok": True,
        "service": services.settings.app_name,
        "model_ready": services.pipeline.ready,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
