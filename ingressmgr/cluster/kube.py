"""ClusterAPI backed by kubernetes-asyncio.

Typed APIs are used for the dependent kinds and CustomObjectsApi for App.
Responses are converted to plain camelCase dicts so the reconciler works
with the same shapes the builder produces.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import aiohttp
from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]
from kubernetes_asyncio.client.exceptions import ApiException  # type: ignore[import-untyped]

from ingressmgr.cluster.base import ClusterAPI
from ingressmgr.errors import (
    ClusterAPIError,
    ConflictError,
    NotFoundError,
    TransientClusterError,
)
from ingressmgr.models.resources import (
    APP_GROUP,
    APP_KIND,
    APP_PLURAL,
    APP_VERSION,
    DependentKind,
    ObjectKey,
)
from ingressmgr.observability.logging import get_logger

_log = get_logger("cluster.kube")

_PROPAGATION_POLICY = "Background"


@dataclass(frozen=True)
class _KindOps:
    read: Callable[[ObjectKey], Awaitable[Any]]
    create: Callable[[str, dict[str, Any]], Awaitable[Any]]
    replace: Callable[[ObjectKey, dict[str, Any]], Awaitable[Any]]
    delete: Callable[[ObjectKey], Awaitable[Any]]
    list_namespaced: Callable[..., Awaitable[Any]]
    list_all: Callable[..., Awaitable[Any]]


def translate_api_exception(exc: ApiException, kind: str, key: ObjectKey | str) -> ClusterAPIError:
    """Map a kubernetes-asyncio ApiException onto the error taxonomy."""
    status = exc.status
    message = f"{kind} {key}: {status} {exc.reason}"
    if status == 404:
        return NotFoundError(message, status=status)
    if status == 409:
        return ConflictError(message, status=status)
    if status is not None and (status == 429 or status >= 500):
        return TransientClusterError(message, status=status)
    return ClusterAPIError(message, status=status)


class KubeClusterAPI(ClusterAPI):
    """ClusterAPI over a shared kubernetes-asyncio ApiClient."""

    def __init__(self, api_client: k8s_client.ApiClient) -> None:
        self._api_client = api_client
        apps_v1 = k8s_client.AppsV1Api(api_client)
        core_v1 = k8s_client.CoreV1Api(api_client)
        networking_v1 = k8s_client.NetworkingV1Api(api_client)
        custom = k8s_client.CustomObjectsApi(api_client)

        def _delete_kwargs() -> dict[str, Any]:
            return {"propagation_policy": _PROPAGATION_POLICY}

        self._ops: dict[str, _KindOps] = {
            APP_KIND: _KindOps(
                read=lambda k: custom.get_namespaced_custom_object(APP_GROUP, APP_VERSION, k.namespace, APP_PLURAL, k.name),
                create=lambda ns, body: custom.create_namespaced_custom_object(APP_GROUP, APP_VERSION, ns, APP_PLURAL, body),
                replace=lambda k, body: custom.replace_namespaced_custom_object(
                    APP_GROUP, APP_VERSION, k.namespace, APP_PLURAL, k.name, body
                ),
                delete=lambda k: custom.delete_namespaced_custom_object(
                    APP_GROUP, APP_VERSION, k.namespace, APP_PLURAL, k.name, **_delete_kwargs()
                ),
                list_namespaced=lambda namespace, **kw: custom.list_namespaced_custom_object(
                    APP_GROUP, APP_VERSION, namespace, APP_PLURAL, **kw
                ),
                list_all=lambda **kw: custom.list_cluster_custom_object(APP_GROUP, APP_VERSION, APP_PLURAL, **kw),
            ),
            DependentKind.WORKLOAD.value: _KindOps(
                read=lambda k: apps_v1.read_namespaced_deployment(k.name, k.namespace),
                create=lambda ns, body: apps_v1.create_namespaced_deployment(ns, body),
                replace=lambda k, body: apps_v1.replace_namespaced_deployment(k.name, k.namespace, body),
                delete=lambda k: apps_v1.delete_namespaced_deployment(k.name, k.namespace, **_delete_kwargs()),
                list_namespaced=apps_v1.list_namespaced_deployment,
                list_all=apps_v1.list_deployment_for_all_namespaces,
            ),
            DependentKind.ENDPOINT.value: _KindOps(
                read=lambda k: core_v1.read_namespaced_service(k.name, k.namespace),
                create=lambda ns, body: core_v1.create_namespaced_service(ns, body),
                replace=lambda k, body: core_v1.replace_namespaced_service(k.name, k.namespace, body),
                delete=lambda k: core_v1.delete_namespaced_service(k.name, k.namespace, **_delete_kwargs()),
                list_namespaced=core_v1.list_namespaced_service,
                list_all=core_v1.list_service_for_all_namespaces,
            ),
            DependentKind.ROUTE.value: _KindOps(
                read=lambda k: networking_v1.read_namespaced_ingress(k.name, k.namespace),
                create=lambda ns, body: networking_v1.create_namespaced_ingress(ns, body),
                replace=lambda k, body: networking_v1.replace_namespaced_ingress(k.name, k.namespace, body),
                delete=lambda k: networking_v1.delete_namespaced_ingress(k.name, k.namespace, **_delete_kwargs()),
                list_namespaced=networking_v1.list_namespaced_ingress,
                list_all=networking_v1.list_ingress_for_all_namespaces,
            ),
        }

    def _ops_for(self, kind: str) -> _KindOps:
        try:
            return self._ops[kind]
        except KeyError:
            raise ClusterAPIError(f"unsupported kind: {kind}") from None

    def list_function(self, kind: str, namespace: str = "") -> Callable[..., Awaitable[Any]]:
        """Return the list call a watch stream should wrap for *kind*.

        An empty *namespace* selects the all-namespaces variant.
        """
        ops = self._ops_for(kind)
        if not namespace:
            return ops.list_all

        async def _list_namespaced(**kwargs: Any) -> Any:
            return await ops.list_namespaced(namespace, **kwargs)

        return _list_namespaced

    def to_dict(self, obj: Any) -> dict[str, Any]:
        if isinstance(obj, dict):
            return obj
        return self._api_client.sanitize_for_serialization(obj)  # type: ignore[no-any-return]

    async def _call(self, kind: str, key: ObjectKey | str, call: Awaitable[Any]) -> Any:
        try:
            return await call
        except ApiException as exc:
            raise translate_api_exception(exc, kind, key) from exc
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            _log.warning("cluster_api_unreachable", kind=kind, key=str(key), error=str(exc))
            raise TransientClusterError(f"{kind} {key}: {type(exc).__name__}: {exc}") from exc

    async def get(self, kind: str, key: ObjectKey) -> dict[str, Any]:
        ops = self._ops_for(kind)
        return self.to_dict(await self._call(kind, key, ops.read(key)))

    async def create(self, obj: dict[str, Any]) -> dict[str, Any]:
        kind = str(obj.get("kind", ""))
        ops = self._ops_for(kind)
        key = ObjectKey.of(obj)
        return self.to_dict(await self._call(kind, key, ops.create(key.namespace, obj)))

    async def update(self, obj: dict[str, Any]) -> dict[str, Any]:
        kind = str(obj.get("kind", ""))
        ops = self._ops_for(kind)
        key = ObjectKey.of(obj)
        return self.to_dict(await self._call(kind, key, ops.replace(key, obj)))

    async def delete(self, kind: str, key: ObjectKey) -> None:
        ops = self._ops_for(kind)
        await self._call(kind, key, ops.delete(key))
