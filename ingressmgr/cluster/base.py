"""Cluster API contract consumed by the reconciler.

The reconciler receives a ClusterAPI instance explicitly so tests can swap in
an in-memory implementation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from ingressmgr.models.resources import ObjectKey


class ClusterAPI(ABC):
    """get/create/update/delete against the cluster store.

    Implementations must not retry. Errors are reported as subclasses of
    ``ingressmgr.errors.ClusterAPIError``:

    * ``NotFoundError``         -- get/delete of a missing object.
    * ``ConflictError``         -- create of an existing object, or update with
                                   a stale ``metadata.resourceVersion``.
    * ``TransientClusterError`` -- availability problems.
    """

    @abstractmethod
    async def get(self, kind: str, key: ObjectKey) -> dict[str, Any]:
        """Return the live object of *kind* named *key*."""

    @abstractmethod
    async def create(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Persist a new object; return it as stored."""

    @abstractmethod
    async def update(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Replace an existing object wholesale; return it as stored."""

    @abstractmethod
    async def delete(self, kind: str, key: ObjectKey) -> None:
        """Delete the object of *kind* named *key*."""
