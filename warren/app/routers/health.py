"""Liveness and readiness endpoints for a warren Application.

The `warren` runner serves no HTTP. Services that want probes mount these
themselves: either serve `create_health_app(application)` with an ASGI server,
or include `health_router` in an existing FastAPI app and set
`app.state.application`.
"""
from typing import Any

from fastapi import APIRouter, FastAPI, Request, Response
from loguru import logger

from warren.app.application.application import Application
from warren.app.core import SERVICE_NAME

health_router = APIRouter(tags=["Health"])


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


@health_router.get(
    "/health/live",
    summary="Liveness probe",
    description="Returns 200 if the consumer process is running.",
    responses={200: {"description": "Service is alive."}},
)
async def live() -> dict:
    return {"status": "ok"}


@health_router.get(
    "/health/ready",
    summary="Readiness probe",
    description="Returns 200 only when the application is connected and consuming its queues.",
    responses={
        200: {"description": "Application is consuming."},
        503: {"description": "Application not connected or not consuming."},
    },
)
async def ready(request: Request) -> Response:
    application = getattr(request.app.state, "application", None)
    if application is None:
        _log("application_not_initialized")
        return Response(status_code=503, content="Not ready")
    if not application.ready:
        _log("application_not_ready", state=application.state.value)
        return Response(status_code=503, content=f"Not ready: {application.state.value}")
    return Response(status_code=200, content="OK")


def create_health_app(application: Application) -> FastAPI:
    app = FastAPI(title="warren health", version="0.1.0")
    app.state.application = application
    app.include_router(health_router)
    return app
