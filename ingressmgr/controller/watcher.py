"""Watch-stream source feeding the controller.

ResourceWatcher lists one kind, hands every item to the callback, then
follows a watch from the list's resourceVersion. The stream is resumed from
the last seen resourceVersion after a server-side timeout, relisted after
``410 Gone``, and reconnected with exponential back-off after errors.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from kubernetes_asyncio import watch  # type: ignore[import-untyped]
from kubernetes_asyncio.client.exceptions import ApiException  # type: ignore[import-untyped]

from ingressmgr.observability.logging import get_logger
from ingressmgr.observability.metrics import watch_restarts_total

EventCallback = Callable[[str, str, dict[str, Any]], None]

_INITIAL_BACKOFF_SECONDS = 1.0


class _ResourceVersionExpired(Exception):
    """The server no longer has history for our resourceVersion."""


class ResourceWatcher:
    """List-then-watch loop for a single kind.

    Args:
        kind:            Kind name, used for logging and as the callback's
                         second argument.
        list_fn:         kubernetes-asyncio list call (namespaced or cluster-wide).
        on_event:        Callback ``(event_type, kind, obj)``; relisted items
                         are reported as ``SYNC``.
        to_dict:         Converter from API models to plain dicts.
        timeout_seconds: Server-side watch timeout per stream.
        reconnect_max:   Upper bound for the reconnect back-off.
    """

    def __init__(
        self,
        kind: str,
        list_fn: Callable[..., Awaitable[Any]],
        on_event: EventCallback,
        to_dict: Callable[[Any], dict[str, Any]],
        timeout_seconds: int = 300,
        reconnect_max: float = 30.0,
    ) -> None:
        self.kind = kind
        self._list_fn = list_fn
        self._on_event = on_event
        self._to_dict = to_dict
        self._timeout_seconds = timeout_seconds
        self._reconnect_max = reconnect_max
        self._resource_version: str | None = None
        self._task: asyncio.Task[None] | None = None
        self._synced = asyncio.Event()
        self._log = get_logger("controller.watcher").bind(kind=kind)

    @property
    def synced(self) -> bool:
        """True once the initial list has been delivered."""
        return self._synced.is_set()

    async def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self.run(), name=f"watch-{self.kind}")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None

    async def run(self) -> None:
        initial = min(_INITIAL_BACKOFF_SECONDS, self._reconnect_max)
        backoff = initial
        while True:
            try:
                if self._resource_version is None:
                    await self._relist()
                await self._stream()
                backoff = initial
            except _ResourceVersionExpired:
                self._log.info("watch resource version expired; relisting")
                watch_restarts_total.labels(kind=self.kind, reason="expired").inc()
                self._resource_version = None
            except Exception as exc:  # noqa: BLE001
                self._log.warning("watch failed; reconnecting", error=str(exc), backoff_s=backoff)
                watch_restarts_total.labels(kind=self.kind, reason="error").inc()
                await asyncio.sleep(backoff)
                backoff = min(backoff * 2, self._reconnect_max)

    async def _relist(self) -> None:
        response = self._to_dict(await self._list_fn())
        items = response.get("items") or []
        for item in items:
            self._dispatch("SYNC", self._to_dict(item))
        metadata = response.get("metadata") or {}
        self._resource_version = metadata.get("resourceVersion") or ""
        self._synced.set()
        self._log.debug("relisted", items=len(items), resource_version=self._resource_version)

    async def _stream(self) -> None:
        kwargs: dict[str, Any] = {"timeout_seconds": self._timeout_seconds}
        if self._resource_version:
            kwargs["resource_version"] = self._resource_version

        w = watch.Watch()
        try:
            async with w.stream(self._list_fn, **kwargs) as stream:
                async for event in stream:
                    self._handle(event)
        except ApiException as exc:
            if exc.status == 410:
                raise _ResourceVersionExpired from exc
            raise

    def _handle(self, event: dict[str, Any]) -> None:
        event_type = str(event.get("type", ""))
        raw = event.get("raw_object")
        obj = raw if isinstance(raw, dict) else self._to_dict(event.get("object"))

        if event_type == "ERROR":
            if obj.get("code") == 410:
                raise _ResourceVersionExpired
            raise RuntimeError(f"watch error event: {obj.get('message', obj)}")

        version = (obj.get("metadata") or {}).get("resourceVersion")
        if version:
            self._resource_version = str(version)
        self._dispatch(event_type, obj)

    def _dispatch(self, event_type: str, obj: dict[str, Any]) -> None:
        try:
            self._on_event(event_type, self.kind, obj)
        except Exception as exc:  # noqa: BLE001
            self._log.error("watch callback raised", event_type=event_type, error=str(exc))
