"""Shared fixtures for ingress-manager integration tests.

Provides an in-memory ClusterAPI so the reconciler and controller can be
exercised end to end without touching a real Kubernetes cluster.
"""

from __future__ import annotations

import asyncio
import copy
import itertools
from dataclasses import dataclass
from typing import Any

import pytest

from ingressmgr.cluster.base import ClusterAPI
from ingressmgr.errors import ConflictError, NotFoundError
from ingressmgr.models.resources import APP_API_VERSION, APP_KIND, ObjectKey

MUTATING_VERBS = ("create", "update", "delete")


@dataclass(frozen=True)
class Call:
    verb: str
    kind: str
    key: ObjectKey
    ok: bool


class FakeCluster(ClusterAPI):
    """Dict-backed cluster store.

    * every call yields to the event loop first, so concurrent passes interleave;
    * create fails with ConflictError if the object exists (check and insert
      happen without an intervening await);
    * update fails with ConflictError on a stale ``metadata.resourceVersion``;
    * deleting an App cascades to every object it controls, standing in for
      the garbage collector;
    * ``fail_next(verb, kind, exc)`` makes the next matching call raise *exc*.
    """

    def __init__(self) -> None:
        self.objects: dict[tuple[str, ObjectKey], dict[str, Any]] = {}
        self.calls: list[Call] = []
        self._failures: dict[tuple[str, str], list[Exception]] = {}
        self._versions = itertools.count(1)
        self._uids = itertools.count(1)

    # -- test helpers ---------------------------------------------------

    def fail_next(self, verb: str, kind: str, exc: Exception) -> None:
        self._failures.setdefault((verb, kind), []).append(exc)

    def add_app(
        self,
        name: str = "web",
        image: str | None = "app:v1",
        enable_service: bool = False,
        enable_ingress: bool = False,
        namespace: str = "default",
        **spec: Any,
    ) -> ObjectKey:
        key = ObjectKey(namespace=namespace, name=name)
        full_spec: dict[str, Any] = {"enableService": enable_service, "enableIngress": enable_ingress, **spec}
        if image is not None:
            full_spec["image"] = image
        self.objects[(APP_KIND, key)] = {
            "apiVersion": APP_API_VERSION,
            "kind": APP_KIND,
            "metadata": {
                "name": name,
                "namespace": namespace,
                "uid": f"uid-{next(self._uids)}",
                "resourceVersion": str(next(self._versions)),
                "generation": 1,
            },
            "spec": full_spec,
        }
        return key

    def patch_app_spec(self, key: ObjectKey, **changes: Any) -> None:
        app = self.objects[(APP_KIND, key)]
        app["spec"].update(changes)
        app["metadata"]["generation"] += 1
        app["metadata"]["resourceVersion"] = str(next(self._versions))

    def stored(self, kind: str, key: ObjectKey) -> dict[str, Any] | None:
        return self.objects.get((kind, key))

    def exists(self, kind: str, key: ObjectKey) -> bool:
        return (kind, key) in self.objects

    def mutations(self, ok_only: bool = True) -> list[Call]:
        return [c for c in self.calls if c.verb in MUTATING_VERBS and (c.ok or not ok_only)]

    def reset_calls(self) -> None:
        self.calls.clear()

    # -- ClusterAPI -----------------------------------------------------

    def _maybe_fail(self, verb: str, kind: str, key: ObjectKey) -> None:
        pending = self._failures.get((verb, kind))
        if pending:
            self.calls.append(Call(verb, kind, key, ok=False))
            raise pending.pop(0)

    async def get(self, kind: str, key: ObjectKey) -> dict[str, Any]:
        await asyncio.sleep(0)
        self._maybe_fail("get", kind, key)
        obj = self.objects.get((kind, key))
        self.calls.append(Call("get", kind, key, ok=obj is not None))
        if obj is None:
            raise NotFoundError(f"{kind} {key} not found", status=404)
        return copy.deepcopy(obj)

    async def create(self, obj: dict[str, Any]) -> dict[str, Any]:
        await asyncio.sleep(0)
        kind = obj["kind"]
        key = ObjectKey.of(obj)
        self._maybe_fail("create", kind, key)
        if (kind, key) in self.objects:
            self.calls.append(Call("create", kind, key, ok=False))
            raise ConflictError(f"{kind} {key} already exists", status=409)
        stored = copy.deepcopy(obj)
        stored["metadata"]["uid"] = f"uid-{next(self._uids)}"
        stored["metadata"]["resourceVersion"] = str(next(self._versions))
        self.objects[(kind, key)] = stored
        self.calls.append(Call("create", kind, key, ok=True))
        return copy.deepcopy(stored)

    async def update(self, obj: dict[str, Any]) -> dict[str, Any]:
        await asyncio.sleep(0)
        kind = obj["kind"]
        key = ObjectKey.of(obj)
        self._maybe_fail("update", kind, key)
        current = self.objects.get((kind, key))
        if current is None:
            self.calls.append(Call("update", kind, key, ok=False))
            raise NotFoundError(f"{kind} {key} not found", status=404)
        sent_version = obj.get("metadata", {}).get("resourceVersion")
        if sent_version and sent_version != current["metadata"]["resourceVersion"]:
            self.calls.append(Call("update", kind, key, ok=False))
            raise ConflictError(f"{kind} {key} was modified", status=409)
        stored = copy.deepcopy(obj)
        stored["metadata"]["uid"] = current["metadata"]["uid"]
        stored["metadata"]["resourceVersion"] = str(next(self._versions))
        self.objects[(kind, key)] = stored
        self.calls.append(Call("update", kind, key, ok=True))
        return copy.deepcopy(stored)

    async def delete(self, kind: str, key: ObjectKey) -> None:
        await asyncio.sleep(0)
        self._maybe_fail("delete", kind, key)
        obj = self.objects.pop((kind, key), None)
        if obj is None:
            self.calls.append(Call("delete", kind, key, ok=False))
            raise NotFoundError(f"{kind} {key} not found", status=404)
        self.calls.append(Call("delete", kind, key, ok=True))
        if kind == APP_KIND:
            self._collect_garbage(obj["metadata"]["uid"])

    def _collect_garbage(self, owner_uid: str) -> None:
        for ident, obj in list(self.objects.items()):
            refs = obj.get("metadata", {}).get("ownerReferences") or []
            if any(ref.get("uid") == owner_uid for ref in refs):
                del self.objects[ident]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cluster() -> FakeCluster:
    return FakeCluster()


def live_image(cluster: FakeCluster, key: ObjectKey) -> str | None:
    deployment = cluster.stored("Deployment", key)
    if deployment is None:
        return None
    return deployment["spec"]["template"]["spec"]["containers"][0]["image"]
