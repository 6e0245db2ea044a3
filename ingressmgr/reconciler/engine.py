"""Reconciliation engine for App resources.

One pass per App identity:

    1. fetch the App (missing -> done, the garbage collector owns cleanup)
    2. Workload (Deployment): create when absent, overwrite on image drift
    3. Endpoint (Service):    exists iff spec.enableService
    4. Route (Ingress):       exists iff spec.enableIngress

A same-named dependent controlled by another object is an AlreadyOwnedError;
one the App does not control is never deleted.

The first error aborts the pass and propagates to the caller; mutations
already issued stand, and the next pass resumes from whatever the cluster
then reports. The engine keeps no state between passes.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

from ingressmgr.builder import build, container_image
from ingressmgr.cluster.base import ClusterAPI
from ingressmgr.errors import NotFoundError, ReconcileError
from ingressmgr.models.app import App
from ingressmgr.models.resources import APP_KIND, DependentKind, ObjectKey
from ingressmgr.models.results import Action, Outcome, ReconcileResult
from ingressmgr.observability.logging import get_logger
from ingressmgr.observability.metrics import (
    dependent_mutations_total,
    reconcile_duration_seconds,
    reconcile_errors_total,
    reconcile_total,
)
from ingressmgr.ownership import Scheme, bind, check_controller, default_scheme, is_controlled_by

if TYPE_CHECKING:
    import structlog

_log = get_logger("reconciler.engine")


class Reconciler:
    """Drives the dependents of one App toward its spec per call.

    Args:
        cluster: ClusterAPI used for every read and write.
        scheme:  Kind registry used to build owner references.
    """

    def __init__(self, cluster: ClusterAPI, scheme: Scheme | None = None) -> None:
        self._cluster = cluster
        self._scheme = scheme or default_scheme()

    async def reconcile(self, key: ObjectKey) -> ReconcileResult:
        """Run one reconciliation pass for the App named *key*.

        Raises:
            ReconcileError: any failure other than the modelled NotFound
                branches. ``retryable`` tells the caller whether to requeue.
        """
        t_start = time.monotonic()
        log = _log.bind(app=str(key))
        result = ReconcileResult(key=key)
        log.debug("reconcile_started")
        try:
            await self._reconcile(key, result, log)
        except ReconcileError as exc:
            reconcile_errors_total.labels(error=type(exc).__name__).inc()
            log.warning(
                "reconcile_failed",
                error=str(exc),
                error_type=type(exc).__name__,
                retryable=exc.retryable,
                mutations=len(result.mutations),
            )
            raise
        finally:
            result.duration_ms = (time.monotonic() - t_start) * 1000.0
            reconcile_duration_seconds.observe(result.duration_ms / 1000.0)

        reconcile_total.labels(outcome=result.outcome.value).inc()
        log.info(
            "reconcile_finished",
            outcome=result.outcome.value,
            mutations=[f"{m.action}:{m.kind}" for m in result.mutations],
            duration_ms=round(result.duration_ms, 2),
        )
        return result

    async def _reconcile(
        self,
        key: ObjectKey,
        result: ReconcileResult,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        try:
            raw = await self._cluster.get(APP_KIND, key)
        except NotFoundError:
            log.debug("app_not_found")
            result.outcome = Outcome.APP_NOT_FOUND
            return

        app = App.from_object(raw)
        await self._reconcile_workload(app, result, log)
        await self._reconcile_optional(DependentKind.ENDPOINT, app, app.enable_service, result, log)
        await self._reconcile_optional(DependentKind.ROUTE, app, app.enable_ingress, result, log)

    def _desired(self, kind: DependentKind, app: App) -> dict[str, Any]:
        return bind(build(kind, app), app, self._scheme)

    async def _reconcile_workload(
        self,
        app: App,
        result: ReconcileResult,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        kind = DependentKind.WORKLOAD
        desired = self._desired(kind, app)

        try:
            live = await self._cluster.get(kind.value, app.key)
        except NotFoundError:
            await self._cluster.create(desired)
            self._record(result, kind, Action.CREATE, app.key, log)
            return

        check_controller(live, app)

        # Drift is decided on the live object, not on the freshly built one.
        live_image = container_image(live)
        if live_image == app.image:
            return

        log.info("workload_drift_detected", live_image=live_image, desired_image=app.image)
        live_version = (live.get("metadata") or {}).get("resourceVersion")
        if live_version:
            desired["metadata"]["resourceVersion"] = live_version
        await self._cluster.update(desired)
        self._record(result, kind, Action.UPDATE, app.key, log)

    async def _reconcile_optional(
        self,
        kind: DependentKind,
        app: App,
        enabled: bool,
        result: ReconcileResult,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        """Existence-only convergence for Endpoint and Route.

        Content drift on a present object is not corrected.
        """
        desired = self._desired(kind, app)

        try:
            live: dict[str, Any] | None = await self._cluster.get(kind.value, app.key)
        except NotFoundError:
            live = None

        if enabled and live is None:
            await self._cluster.create(desired)
            self._record(result, kind, Action.CREATE, app.key, log)
        elif enabled:
            check_controller(live, app)
            log.debug("skip_update", kind=kind.value)
        elif live is not None:
            if not is_controlled_by(live, app):
                # Same name, but not ours to remove.
                log.info("skip_delete_not_controlled", kind=kind.value)
                return
            try:
                await self._cluster.delete(kind.value, app.key)
            except NotFoundError:
                # Removed by someone else between get and delete.
                log.debug("delete_target_already_gone", kind=kind.value)
                return
            self._record(result, kind, Action.DELETE, app.key, log)

    @staticmethod
    def _record(
        result: ReconcileResult,
        kind: DependentKind,
        action: Action,
        key: ObjectKey,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        result.record(kind, action, key)
        dependent_mutations_total.labels(kind=kind.value, action=action.value).inc()
        log.info("dependent_mutated", kind=kind.value, action=action.value)
