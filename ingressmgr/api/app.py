"""FastAPI application factory for the ingress-manager HTTP endpoints.

Usage::

    from ingressmgr.api.app import create_app

    app = create_app(controller=controller, config=config, watchers=watchers)

Probes (``/healthz``, ``/readyz``) and ``/metrics`` are mounted at the root
so kubelet and Prometheus defaults work; ``/api/v1/status`` reports the
controller's queue and worker state.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ingressmgr.api.routes import probes, router
from ingressmgr.api.schemas import ErrorResponse

_log = structlog.get_logger(component="api.app")

_API_PREFIX = "/api/v1"


def create_app(
    controller: Any = None,
    config: Any = None,
    watchers: list[Any] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        controller: Controller instance (``running``, ``workers``, ``queue``).
        config:     IngressManagerConfig, used for status metadata.
        watchers:   ResourceWatchers whose ``synced`` flag gates readiness.

    Returns:
        Configured FastAPI application, ready to be served by uvicorn.
    """
    from ingressmgr import __version__

    app = FastAPI(
        title="ingress-manager",
        summary="App controller health and status",
        version=__version__,
        docs_url="/api/v1/docs",
        redoc_url=None,
        openapi_url="/api/v1/openapi.json",
    )

    app.state.controller = controller
    app.state.config = config
    app.state.watchers = watchers or []

    app.include_router(probes)
    app.include_router(router, prefix=_API_PREFIX)

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Catch-all for unhandled exceptions; never expose stack traces."""
        _log.error(
            "unhandled_exception",
            path=str(request.url.path),
            method=request.method,
            error=str(exc),
        )
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="INTERNAL_ERROR",
                detail="An unexpected error occurred.",
            ).model_dump(),
        )

    return app
