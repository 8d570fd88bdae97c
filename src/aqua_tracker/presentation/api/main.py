from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from aqua_tracker.config import settings
from aqua_tracker.domain.errors import (
    ApiFailureError,
    AuthenticationError,
    InvalidIdentifier,
    LockConflict,
    SessionNotFound,
    TrackerError,
    TransportFailureError,
    VersionUnavailable,
)
from aqua_tracker.logging_config import setup_logging
from aqua_tracker.metrics import registry
from aqua_tracker.presentation.api.dependencies import Container, build_container
from aqua_tracker.presentation.api.routes.health import router as health_router
from aqua_tracker.presentation.api.routes.items import router as items_router
from aqua_tracker.presentation.api.routes.sessions import router as sessions_router

ERROR_STATUS: list[tuple[type[TrackerError], int]] = [
    (InvalidIdentifier, 400),
    (AuthenticationError, 401),
    (SessionNotFound, 404),
    (LockConflict, 409),
    (VersionUnavailable, 409),
    (ApiFailureError, 502),
    (TransportFailureError, 504),
]


def status_for(exc: TrackerError) -> int:
    for kind, status in ERROR_STATUS:
        if isinstance(exc, kind):
            return status
    return 500


async def tracker_error_handler(request: Request, exc: TrackerError) -> JSONResponse:
    body: dict[str, object] = {"error": type(exc).__name__, "message": str(exc)}
    if isinstance(exc, ApiFailureError):
        body["tracker_status"] = exc.status
        body["tracker_response"] = exc.payload
    return JSONResponse(status_code=status_for(exc), content=body)


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"error": "ValueError", "message": str(exc)})


def create_app(container: Container | None = None) -> FastAPI:
    setup_logging(settings.log_level)
    container = container or build_container()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await container.executor.aclose()

    app = FastAPI(title="AquaCloud Tracker Bridge", version="0.1.0", lifespan=lifespan)
    app.state.container = container
    app.include_router(health_router)
    app.include_router(sessions_router)
    app.include_router(items_router)
    app.add_exception_handler(TrackerError, tracker_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(ValueError, value_error_handler)  # type: ignore[arg-type]

    @app.get("/metrics")
    def metrics() -> Response:  # type: ignore[misc]
        data = generate_latest(registry)
        return Response(content=data, media_type=CONTENT_TYPE_LATEST)

    return app


app = create_app()
