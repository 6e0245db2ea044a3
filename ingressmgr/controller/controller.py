"""Worker pool that drains the work queue into the reconciler.

Retry policy:

* success                       -> forget the key's failure history
* cluster API error             -> requeue with back-off, whatever the status
* templating or configuration   -> log, forget; the next App change re-triggers
* per-pass timeout / unexpected -> requeue with back-off
"""

from __future__ import annotations

import asyncio
from typing import Any, Protocol

from ingressmgr.controller.mapping import keys_for_event
from ingressmgr.controller.queue import WorkQueue
from ingressmgr.errors import ReconcileError
from ingressmgr.models.resources import ObjectKey
from ingressmgr.models.results import ReconcileResult
from ingressmgr.observability.logging import get_logger

_log = get_logger("controller")

_SHUTDOWN_GRACE_SECONDS = 10


class SupportsReconcile(Protocol):
    async def reconcile(self, key: ObjectKey) -> ReconcileResult: ...


class Controller:
    """Runs ``workers`` concurrent reconciliation passes, never two for one key.

    Args:
        reconciler:        Object exposing ``async reconcile(key)``.
        queue:             Work queue; a default one is created if omitted.
        workers:           Number of concurrent workers.
        reconcile_timeout: Seconds allowed per pass; 0 disables the limit.
    """

    def __init__(
        self,
        reconciler: SupportsReconcile,
        queue: WorkQueue | None = None,
        workers: int = 4,
        reconcile_timeout: float = 0.0,
    ) -> None:
        if workers < 1:
            raise ValueError(f"workers must be >= 1, got {workers}")
        self._reconciler = reconciler
        self.queue = queue if queue is not None else WorkQueue()
        self.workers = workers
        self._reconcile_timeout = reconcile_timeout
        self._tasks: list[asyncio.Task[None]] = []
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def enqueue(self, key: ObjectKey) -> None:
        self.queue.add(key)

    def handle_event(self, event_type: str, kind: str, obj: dict[str, Any]) -> None:
        """Watch callback: enqueue every App affected by *obj*."""
        for key in keys_for_event(kind, obj):
            _log.debug("event_enqueued", event_type=event_type, kind=kind, app=str(key))
            self.queue.add(key)

    async def start(self) -> None:
        if self._running:
            return
        self._tasks = [
            asyncio.create_task(self._worker(i), name=f"reconcile-worker-{i}") for i in range(self.workers)
        ]
        self._running = True
        _log.info("controller started", workers=self.workers)

    async def stop(self) -> None:
        """Stop handing out work and wait for in-flight passes to finish.

        Passes still running after the grace period are cancelled; whatever
        they already sent to the cluster stays.
        """
        if not self._running:
            return
        self._running = False
        self.queue.shut_down()
        _, pending = await asyncio.wait(self._tasks, timeout=_SHUTDOWN_GRACE_SECONDS)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            _log.warning("controller stop cancelled in-flight passes", cancelled=len(pending))
        self._tasks.clear()
        _log.info("controller stopped")

    async def _worker(self, index: int) -> None:
        while True:
            key = await self.queue.get()
            if key is None:
                return
            try:
                await self.process(key)
            finally:
                self.queue.done(key)

    async def process(self, key: ObjectKey) -> None:
        """Run one pass for *key* and apply the retry policy."""
        try:
            if self._reconcile_timeout > 0:
                await asyncio.wait_for(self._reconciler.reconcile(key), timeout=self._reconcile_timeout)
            else:
                await self._reconciler.reconcile(key)
        except ReconcileError as exc:
            if exc.retryable:
                self._requeue(key, exc)
            else:
                self.queue.forget(key)
                _log.error(
                    "reconcile_dropped",
                    app=str(key),
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
            return
        except TimeoutError as exc:
            self._requeue(key, exc)
            return
        except Exception as exc:  # noqa: BLE001
            _log.error("reconcile_unexpected_error", app=str(key), error=str(exc), exc_info=True)
            self._requeue(key, exc)
            return

        self.queue.forget(key)

    def _requeue(self, key: ObjectKey, exc: BaseException) -> None:
        delay = self.queue.add_rate_limited(key)
        _log.info(
            "reconcile_requeued",
            app=str(key),
            error_type=type(exc).__name__,
            retries=self.queue.retries(key),
            delay_s=round(delay, 3),
        )
