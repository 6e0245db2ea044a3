"""Core data structures for ingress-manager."""

from ingressmgr.models.app import App
from ingressmgr.models.config import IngressManagerConfig
from ingressmgr.models.resources import (
    APP_API_VERSION,
    APP_GROUP,
    APP_KIND,
    APP_PLURAL,
    APP_VERSION,
    DependentKind,
    ObjectKey,
)
from ingressmgr.models.results import Action, Mutation, Outcome, ReconcileResult

__all__ = [
    "APP_API_VERSION",
    "APP_GROUP",
    "APP_KIND",
    "APP_PLURAL",
    "APP_VERSION",
    "Action",
    "App",
    "DependentKind",
    "IngressManagerConfig",
    "Mutation",
    "ObjectKey",
    "Outcome",
    "ReconcileResult",
]
