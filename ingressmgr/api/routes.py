"""Health, readiness, status and metrics routes."""

from __future__ import annotations

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from ingressmgr.api.schemas import HealthResponse, StatusResponse

probes = APIRouter()
router = APIRouter()


def _watches_synced(request: Request) -> bool:
    watchers = request.app.state.watchers or []
    return all(w.synced for w in watchers)


@probes.get("/healthz", response_model=HealthResponse)
async def healthz() -> HealthResponse:
    return HealthResponse(status="ok")


@probes.get("/readyz", response_model=HealthResponse)
async def readyz(request: Request) -> Response:
    """Ready once the controller runs and every watch finished its initial list."""
    controller = request.app.state.controller
    if controller is None or not controller.running or not _watches_synced(request):
        return JSONResponse(status_code=503, content=HealthResponse(status="not ready").model_dump())
    return JSONResponse(status_code=200, content=HealthResponse(status="ok").model_dump())


@probes.get("/metrics")
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@router.get("/status", response_model=StatusResponse)
async def status(request: Request) -> StatusResponse:
    from ingressmgr import __version__

    controller = request.app.state.controller
    config = request.app.state.config
    return StatusResponse(
        version=__version__,
        running=bool(controller is not None and controller.running),
        workers=controller.workers if controller is not None else 0,
        queue_depth=len(controller.queue) if controller is not None else 0,
        watch_namespace=config.controller.watch_namespace if config is not None else "",
        watches_synced=_watches_synced(request),
    )
