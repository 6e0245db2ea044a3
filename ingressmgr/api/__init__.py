"""HTTP layer for ingress-manager.

Exposes:
    create_app -- FastAPI application factory.
    build_app  -- Alias for create_app (used by ingressmgr.app bootstrap).
"""

from ingressmgr.api.app import create_app

build_app = create_app

__all__ = ["build_app", "create_app"]
