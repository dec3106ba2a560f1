from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from presence_ai import __version__
from presence_ai.attendance import load_timezone
from presence_ai.bootstrap import build_pipeline, build_repository
from presence_ai.config import PresenceSettings, get_settings
from presence_ai.database import PresenceRepository
from presence_ai.exceptions import (
    CampusConfigError,
    InferenceError,
    InferenceNotReadyError,
    InvalidCaptureError,
    NotEnrolledError,
    PersistenceError,
    PresenceError,
)
from presence_ai.face_module import FacePipeline
from presence_ai.services import AttendanceService, EnrollmentService, GeofenceService, VerificationService
from presence_ai.utils.logger import setup_logger

from .deps import ServiceContainer
from .routes import attendance, campus, enrollment, geofence, health, verification

_STATUS_BY_ERROR: list[tuple[type[PresenceError], int]] = [
    (NotEnrolledError, status.HTTP_404_NOT_FOUND),
    (InvalidCaptureError, 422),
    (InferenceNotReadyError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (CampusConfigError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (PersistenceError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (InferenceError, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def build_services(
    settings: PresenceSettings,
    pipeline: FacePipeline | None = None,
    repository: PresenceRepository | None = None,
) -> ServiceContainer:
    settings.ensure_directories()
    tz = load_timezone(settings.timezone)
    pipeline = pipeline or build_pipeline(settings)
    repository = repository or build_repository(settings)
    return ServiceContainer(
        settings=settings,
        tz=tz,
        pipeline=pipeline,
        repository=repository,
        enrollment=EnrollmentService(pipeline, repository),
        verification=VerificationService(pipeline, repository, tz),
        attendance=AttendanceService(repository, tz),
        geofence=GeofenceService(repository, campus_seed=settings.campus_seed),
    )


def create_app(
    settings: PresenceSettings | None = None,
    pipeline: FacePipeline | None = None,
    repository: PresenceRepository | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    services = build_services(settings, pipeline, repository)
    logger = setup_logger("api")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Presence service started (model_ready=%s)", services.pipeline.ready)
        yield
        services.geofence.stop()

    app = FastAPI(title=settings.app_name, version=__version__, lifespan=lifespan)
    app.state.services = services

    @app.exception_handler(PresenceError)
    async def presence_error_handler(request: Request, exc: PresenceError) -> JSONResponse:
        code = status.HTTP_400_BAD_REQUEST
        for error_type, mapped in _STATUS_BY_ERROR:
            if isinstance(exc, error_type):
                code = mapped
                break
        if code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=code, content={"detail": str(exc), "error": type(exc).__name__})

    for router in (health, campus, enrollment, verification, geofence, attendance):
        app.include_router(router.router, prefix=settings.api_prefix)
    return app
