"""The App custom resource as observed by the reconciler."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any

from ingressmgr.models.resources import APP_API_VERSION, APP_KIND, ObjectKey


@dataclass(frozen=True)
class App:
    """Desired state authored by the user.

    Only ``image``, ``enableService`` and ``enableIngress`` are interpreted
    here; the rest of ``spec`` is passed through to the templates untouched.
    Instances are never written back to the cluster.
    """

    name: str
    namespace: str
    uid: str = ""
    api_version: str = APP_API_VERSION
    kind: str = APP_KIND
    generation: int = 0
    resource_version: str = ""
    spec: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> ObjectKey:
        return ObjectKey(namespace=self.namespace, name=self.name)

    @property
    def image(self) -> str | None:
        value = self.spec.get("image")
        return str(value) if value is not None else None

    @property
    def enable_service(self) -> bool:
        return bool(self.spec.get("enableService", False))

    @property
    def enable_ingress(self) -> bool:
        return bool(self.spec.get("enableIngress", False))

    def template_context(self) -> dict[str, Any]:
        """Return the substitution context handed to the manifest templates."""
        return {
            "metadata": {"name": self.name, "namespace": self.namespace},
            "spec": copy.deepcopy(self.spec),
        }

    @classmethod
    def from_object(cls, obj: dict[str, Any]) -> App:
        """Build an App from a raw cluster object (as returned by the API)."""
        metadata = obj.get("metadata") or {}
        spec = obj.get("spec") or {}
        return cls(
            name=str(metadata.get("name", "")),
            namespace=str(metadata.get("namespace", "")),
            uid=str(metadata.get("uid", "") or ""),
            api_version=str(obj.get("apiVersion", APP_API_VERSION)),
            kind=str(obj.get("kind", APP_KIND)),
            generation=int(metadata.get("generation", 0) or 0),
            resource_version=str(metadata.get("resourceVersion", "") or ""),
            spec=dict(spec),
        )
