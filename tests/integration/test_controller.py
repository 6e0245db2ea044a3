"""Integration tests for the Controller worker pool.

Tests cover: end-to-end convergence, retry policy per error class, the
one-pass-per-key guarantee, dirty-key replay, and event mapping.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import pytest

from ingressmgr.controller import Controller, RateLimiter, WorkQueue
from ingressmgr.errors import ClusterAPIError, ConfigurationError, ConflictError, NotFoundError, TemplatingError
from ingressmgr.models.resources import APP_API_VERSION, APP_KIND, ObjectKey
from ingressmgr.models.results import ReconcileResult
from ingressmgr.reconciler import Reconciler

from .conftest import FakeCluster, live_image

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _fast_queue() -> WorkQueue:
    return WorkQueue(RateLimiter(base_delay=0.001, max_delay=0.01))


async def _eventually(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll *predicate* until it holds or *timeout* expires."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            pytest.fail("condition not met before timeout")
        await asyncio.sleep(0.005)


class _RecordingReconciler:
    """Stub reconciler that tracks overlapping passes."""

    def __init__(self, delay: float = 0.02) -> None:
        self.delay = delay
        self.calls: list[ObjectKey] = []
        self.active: set[ObjectKey] = set()
        self.overlaps = 0
        self.max_parallel = 0

    async def reconcile(self, key: ObjectKey) -> ReconcileResult:
        if key in self.active:
            self.overlaps += 1
        self.active.add(key)
        self.calls.append(key)
        self.max_parallel = max(self.max_parallel, len(self.active))
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.active.discard(key)
        return ReconcileResult(key=key)


class _RaisingReconciler:
    def __init__(self, exc: BaseException) -> None:
        self.exc = exc
        self.calls = 0

    async def reconcile(self, key: ObjectKey) -> ReconcileResult:
        self.calls += 1
        raise self.exc


class _SlowReconciler:
    async def reconcile(self, key: ObjectKey) -> ReconcileResult:
        await asyncio.sleep(5)
        return ReconcileResult(key=key)


KEY = ObjectKey("default", "web")


# ---------------------------------------------------------------------------
# End to end
# ---------------------------------------------------------------------------


class TestEndToEnd:
    async def test_enqueued_app_converges(self, cluster: FakeCluster) -> None:
        key = cluster.add_app("web", image="app:v1", enable_service=True)
        controller = Controller(Reconciler(cluster), queue=_fast_queue(), workers=2)
        await controller.start()
        try:
            controller.enqueue(key)
            await _eventually(lambda: cluster.exists("Service", key))
            assert live_image(cluster, key) == "app:v1"
        finally:
            await controller.stop()

    async def test_conflict_is_retried_until_converged(self, cluster: FakeCluster) -> None:
        key = cluster.add_app("web", enable_service=True)
        cluster.fail_next("create", "Deployment", ConflictError("already exists", status=409))
        controller = Controller(Reconciler(cluster), queue=_fast_queue(), workers=1)
        await controller.start()
        try:
            controller.enqueue(key)
            await _eventually(lambda: cluster.exists("Service", key))
        finally:
            await controller.stop()

        creates = [c.ok for c in cluster.calls if c.verb == "create" and c.kind == "Deployment"]
        assert creates == [False, True]

    async def test_workload_vanishing_before_update_is_retried(self, cluster: FakeCluster) -> None:
        key = cluster.add_app("web", image="app:v1")
        reconciler = Reconciler(cluster)
        await reconciler.reconcile(key)
        cluster.patch_app_spec(key, image="app:v2")
        cluster.fail_next("update", "Deployment", NotFoundError("deployments \"web\" not found", status=404))
        controller = Controller(reconciler, queue=_fast_queue(), workers=1)
        await controller.start()
        try:
            controller.enqueue(key)
            await _eventually(lambda: live_image(cluster, key) == "app:v2")
        finally:
            await controller.stop()

        updates = [c.ok for c in cluster.calls if c.verb == "update" and c.kind == "Deployment"]
        assert updates == [False, True]

    async def test_dependent_event_triggers_owner_pass(self, cluster: FakeCluster) -> None:
        key = cluster.add_app("web", image="app:v1")
        controller = Controller(Reconciler(cluster), queue=_fast_queue(), workers=1)
        await controller.start()
        try:
            controller.enqueue(key)
            await _eventually(lambda: cluster.exists("Deployment", key))
            deployment = cluster.stored("Deployment", key)
            deployment["spec"]["template"]["spec"]["containers"][0]["image"] = "other:1"

            controller.handle_event("MODIFIED", "Deployment", deployment)
            await _eventually(lambda: live_image(cluster, key) == "app:v1")
        finally:
            await controller.stop()


# ---------------------------------------------------------------------------
# Retry policy
# ---------------------------------------------------------------------------


class TestRetryPolicy:
    async def test_non_retryable_error_is_dropped(self) -> None:
        reconciler = _RaisingReconciler(TemplatingError("deployment", "required field 'spec.image' is missing"))
        controller = Controller(reconciler, queue=_fast_queue())

        await controller.process(KEY)
        await asyncio.sleep(0.02)

        assert controller.queue.retries(KEY) == 0
        assert len(controller.queue) == 0

    async def test_configuration_error_is_dropped(self) -> None:
        controller = Controller(_RaisingReconciler(ConfigurationError("App has no UID")), queue=_fast_queue())

        await controller.process(KEY)

        assert controller.queue.retries(KEY) == 0

    async def test_forbidden_cluster_error_is_requeued(self) -> None:
        # An RBAC fix does not touch the App, so only a retry picks it up again.
        controller = Controller(_RaisingReconciler(ClusterAPIError("forbidden", status=403)), queue=_fast_queue())

        await controller.process(KEY)

        assert controller.queue.retries(KEY) == 1
        await _eventually(lambda: len(controller.queue) == 1)

    async def test_not_found_escaping_a_pass_is_requeued(self) -> None:
        controller = Controller(_RaisingReconciler(NotFoundError("gone", status=404)), queue=_fast_queue())

        await controller.process(KEY)

        assert controller.queue.retries(KEY) == 1

    async def test_retryable_error_is_requeued_with_backoff(self) -> None:
        controller = Controller(_RaisingReconciler(ConflictError("stale", status=409)), queue=_fast_queue())

        await controller.process(KEY)

        assert controller.queue.retries(KEY) == 1
        await _eventually(lambda: len(controller.queue) == 1)

    async def test_unexpected_exception_is_requeued(self) -> None:
        controller = Controller(_RaisingReconciler(RuntimeError("boom")), queue=_fast_queue())

        await controller.process(KEY)

        assert controller.queue.retries(KEY) == 1

    async def test_timeout_is_requeued(self) -> None:
        controller = Controller(_SlowReconciler(), queue=_fast_queue(), reconcile_timeout=0.01)

        await controller.process(KEY)

        assert controller.queue.retries(KEY) == 1

    async def test_success_forgets_failure_history(self) -> None:
        queue = _fast_queue()
        await Controller(_RaisingReconciler(ConflictError("stale")), queue=queue).process(KEY)
        assert queue.retries(KEY) == 1

        await Controller(_RecordingReconciler(delay=0), queue=queue).process(KEY)

        assert queue.retries(KEY) == 0


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------


class TestConcurrency:
    async def test_same_key_is_never_processed_concurrently(self) -> None:
        reconciler = _RecordingReconciler(delay=0.05)
        controller = Controller(reconciler, queue=_fast_queue(), workers=4)
        await controller.start()
        try:
            controller.enqueue(KEY)
            await _eventually(lambda: KEY in reconciler.active)
            for _ in range(3):
                controller.enqueue(KEY)
            await _eventually(lambda: len(reconciler.calls) == 2 and not reconciler.active)
            await asyncio.sleep(0.1)
        finally:
            await controller.stop()

        assert reconciler.overlaps == 0
        # Adds during the pass collapse into a single replay.
        assert reconciler.calls == [KEY, KEY]

    async def test_distinct_keys_run_in_parallel(self) -> None:
        reconciler = _RecordingReconciler(delay=0.1)
        controller = Controller(reconciler, queue=_fast_queue(), workers=3)
        await controller.start()
        try:
            for name in ("a", "b", "c"):
                controller.enqueue(ObjectKey("default", name))
            await _eventually(lambda: len(reconciler.calls) == 3)
        finally:
            await controller.stop()

        assert reconciler.max_parallel == 3


# ---------------------------------------------------------------------------
# Events and lifecycle
# ---------------------------------------------------------------------------


class TestEventsAndLifecycle:
    async def test_handle_event_enqueues_owner_of_dependent(self) -> None:
        controller = Controller(_RecordingReconciler(), queue=_fast_queue())
        service = {
            "kind": "Service",
            "metadata": {
                "name": "web",
                "namespace": "default",
                "ownerReferences": [
                    {"apiVersion": APP_API_VERSION, "kind": APP_KIND, "name": "web", "uid": "u1", "controller": True}
                ],
            },
        }

        controller.handle_event("DELETED", "Service", service)

        assert await controller.queue.get() == KEY

    async def test_handle_event_ignores_unowned_dependent(self) -> None:
        controller = Controller(_RecordingReconciler(), queue=_fast_queue())

        controller.handle_event("ADDED", "Service", {"metadata": {"name": "web", "namespace": "default"}})

        assert len(controller.queue) == 0

    async def test_stop_shuts_down_queue_and_workers(self) -> None:
        controller = Controller(_RecordingReconciler(), queue=_fast_queue(), workers=2)
        await controller.start()
        assert controller.running

        await controller.stop()

        assert not controller.running
        assert controller.queue.shutting_down
        assert await controller.queue.get() is None

    def test_keeps_injected_empty_queue(self) -> None:
        queue = WorkQueue(RateLimiter(base_delay=5.0, max_delay=10.0))

        assert len(queue) == 0
        assert Controller(_RecordingReconciler(), queue=queue).queue is queue

    async def test_backoff_comes_from_injected_rate_limiter(self) -> None:
        queue = WorkQueue(RateLimiter(base_delay=5.0, max_delay=10.0))
        controller = Controller(_RaisingReconciler(ConflictError("stale")), queue=queue)

        await controller.process(KEY)
        await asyncio.sleep(0.05)

        assert queue.retries(KEY) == 1
        # Still waiting out the 5s back-off.
        assert len(queue) == 0
        queue.shut_down()

    def test_rejects_zero_workers(self) -> None:
        with pytest.raises(ValueError, match="workers"):
            Controller(_RecordingReconciler(), workers=0)
