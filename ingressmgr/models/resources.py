"""Resource identity and dependent-kind data structures."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

APP_GROUP = "ing.igtest.com"
APP_VERSION = "v1"
APP_API_VERSION = f"{APP_GROUP}/{APP_VERSION}"
APP_KIND = "App"
APP_PLURAL = "apps"


@dataclass(frozen=True, order=True)
class ObjectKey:
    """Namespaced identity of a cluster object."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"

    @classmethod
    def parse(cls, value: str) -> ObjectKey:
        """Parse ``namespace/name``.

        Raises:
            ValueError: if *value* is not exactly two non-empty segments.
        """
        parts = value.split("/")
        if len(parts) != 2 or not all(parts):
            raise ValueError(f"Object key must be 'namespace/name', got: {value!r}")
        return cls(namespace=parts[0], name=parts[1])

    @classmethod
    def of(cls, obj: dict[str, Any]) -> ObjectKey:
        """Return the key of a raw cluster object."""
        metadata = obj.get("metadata") or {}
        return cls(namespace=str(metadata.get("namespace", "")), name=str(metadata.get("name", "")))


class DependentKind(StrEnum):
    """Closed set of resources derived from an App.

    The value is the Kubernetes kind of the rendered resource.
    """

    WORKLOAD = "Deployment"
    ENDPOINT = "Service"
    ROUTE = "Ingress"

    @property
    def api_version(self) -> str:
        return _API_VERSIONS[self]

    @property
    def template_name(self) -> str:
        return _TEMPLATE_NAMES[self]


_API_VERSIONS = {
    DependentKind.WORKLOAD: "apps/v1",
    DependentKind.ENDPOINT: "v1",
    DependentKind.ROUTE: "networking.k8s.io/v1",
}

_TEMPLATE_NAMES = {
    DependentKind.WORKLOAD: "deployment",
    DependentKind.ENDPOINT: "service",
    DependentKind.ROUTE: "ingress",
}
