"""Process bootstrap for the ingress-manager controller.

Startup order: config → logging → K8s client → controller → watchers → REST

Every component that starts successfully pushes its teardown onto a stack;
``stop()`` unwinds that stack, so shutdown runs in reverse startup order and
a half-started process only tears down what it actually brought up. A failing
teardown is logged and the unwinding continues.
"""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from ingressmgr.config import load_config
from ingressmgr.models.config import IngressManagerConfig
from ingressmgr.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    import structlog

    from ingressmgr.cluster.kube import KubeClusterAPI
    from ingressmgr.controller import Controller
    from ingressmgr.controller.watcher import ResourceWatcher

_TEARDOWN_TIMEOUT_SECONDS = 15

Teardown = Callable[[], Awaitable[Any]]


class _ComponentError(Exception):
    """A mandatory component could not be started."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"{component} failed to start: {cause}")
        self.component = component
        self.cause = cause


async def load_kube_client() -> object:
    """Return a kubernetes-asyncio ApiClient from in-cluster config or kubeconfig."""
    import kubernetes_asyncio.config as k8s_config  # type: ignore[import-untyped]
    from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

    try:
        # Synchronous in kubernetes-asyncio, unlike load_kube_config.
        k8s_config.load_incluster_config()
    except k8s_config.ConfigException:
        await k8s_config.load_kube_config()
    return k8s_client.ApiClient()


class IngressManagerApp:
    """Owns the controller's components and their lifecycle.

    ``stop()`` is idempotent and safe on an app that never started.
    """

    def __init__(self) -> None:
        self.config: IngressManagerConfig | None = None
        self.cluster: KubeClusterAPI | None = None
        self.controller: Controller | None = None
        self.watchers: list[ResourceWatcher] = []

        self._teardown: list[tuple[str, Teardown]] = []
        self._running = False
        self._log: structlog.stdlib.BoundLogger = get_logger("app")

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Bring every component up in dependency order.

        Raises:
            _ComponentError: a component failed; whatever started before it
                is still registered for teardown.
        """
        self.config = load_config()
        setup_logging(self.config.log.level)
        self._log = get_logger("app")
        self._log.info("ingress-manager starting", version=_version())

        await self._step("k8s_client", self._start_cluster)
        await self._step("controller", self._start_controller)
        await self._step("watchers", self._start_watchers)
        if self.config.api.enabled:
            await self._step("rest", self._start_rest)
        else:
            self._log.info("rest api disabled")

        self._running = True
        self._log.info(
            "ingress-manager started",
            namespace=self.config.controller.watch_namespace or "<all>",
            workers=self.config.controller.max_concurrent_reconciles,
            watched_kinds=[w.kind for w in self.watchers],
        )

    async def _step(self, name: str, start: Callable[[], Awaitable[None]]) -> None:
        self._log.debug("component starting", component=name)
        try:
            await start()
        except Exception as exc:
            raise _ComponentError(name, exc) from exc

    def _on_stop(self, name: str, teardown: Teardown) -> None:
        self._teardown.append((name, teardown))

    async def _start_cluster(self) -> None:
        from ingressmgr.cluster.kube import KubeClusterAPI

        api_client = await load_kube_client()
        self._on_stop("k8s_client", api_client.close)  # type: ignore[attr-defined]
        self.cluster = KubeClusterAPI(api_client)  # type: ignore[arg-type]

    async def _start_controller(self) -> None:
        from ingressmgr.controller import Controller, RateLimiter, WorkQueue
        from ingressmgr.reconciler import Reconciler

        assert self.config is not None and self.cluster is not None
        cfg = self.config.controller
        self.controller = Controller(
            Reconciler(self.cluster),
            queue=WorkQueue(RateLimiter(cfg.backoff_base_seconds, cfg.backoff_max_seconds)),
            workers=cfg.max_concurrent_reconciles,
            reconcile_timeout=cfg.reconcile_timeout_seconds,
        )
        await self.controller.start()
        self._on_stop("controller", self.controller.stop)

    async def _start_watchers(self) -> None:
        from ingressmgr.controller import WATCHED_KINDS
        from ingressmgr.controller.watcher import ResourceWatcher

        assert self.config is not None and self.cluster is not None and self.controller is not None
        namespace = self.config.controller.watch_namespace
        for kind in WATCHED_KINDS:
            watcher = ResourceWatcher(
                kind=kind,
                list_fn=self.cluster.list_function(kind, namespace),
                on_event=self.controller.handle_event,
                to_dict=self.cluster.to_dict,
                timeout_seconds=self.config.watch.timeout_seconds,
                reconnect_max=self.config.watch.reconnect_max_seconds,
            )
            await watcher.start()
            self._on_stop(f"watcher:{kind}", watcher.stop)
            self.watchers.append(watcher)

    async def _start_rest(self) -> None:
        import uvicorn  # type: ignore[import-untyped]

        from ingressmgr.api import build_app

        assert self.config is not None
        server = uvicorn.Server(
            uvicorn.Config(
                app=build_app(controller=self.controller, config=self.config, watchers=self.watchers),
                host="0.0.0.0",
                port=self.config.api.port,
                log_config=None,  # structlog owns logging
                access_log=False,
            )
        )
        task = asyncio.create_task(server.serve(), name="rest-server")

        async def _shutdown_rest() -> None:
            server.should_exit = True
            await asyncio.gather(task, return_exceptions=True)

        self._on_stop("rest", _shutdown_rest)
        self._log.info("rest api listening", port=self.config.api.port)

    async def stop(self) -> None:
        """Unwind the teardown stack, newest component first."""
        if not self._teardown:
            return
        self._running = False
        self._log.info("ingress-manager shutting down")
        while self._teardown:
            name, teardown = self._teardown.pop()
            await self._run_teardown(name, teardown)
        self.watchers.clear()
        self.controller = None
        self.cluster = None
        self._log.info("ingress-manager stopped")

    async def _run_teardown(self, name: str, teardown: Teardown) -> None:
        try:
            await asyncio.wait_for(teardown(), timeout=_TEARDOWN_TIMEOUT_SECONDS)
        except TimeoutError:
            self._log.warning("component stop timed out", component=name, timeout_s=_TEARDOWN_TIMEOUT_SECONDS)
        except Exception as exc:
            self._log.error("component stop failed", component=name, error=str(exc))


def _version() -> str:
    from ingressmgr import __version__

    return __version__


async def main() -> None:
    """Run the controller until SIGTERM or SIGINT."""
    app = IngressManagerApp()
    stop_requested = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stop_requested.set)

    try:
        await app.start()
        await stop_requested.wait()
    except _ComponentError as exc:
        get_logger("app").critical("fatal startup error", component=exc.component, error=str(exc.cause))
        raise SystemExit(1) from exc
    finally:
        await app.stop()
