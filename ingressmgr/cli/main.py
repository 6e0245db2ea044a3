"""Click entry point for the ``ingressmgr`` command."""

from __future__ import annotations

import asyncio
from pathlib import Path

import click
import yaml

from ingressmgr.errors import ReconcileError
from ingressmgr.models.app import App
from ingressmgr.models.resources import APP_KIND, DependentKind, ObjectKey
from ingressmgr.observability.logging import setup_logging


@click.group()
@click.version_option(package_name="ingress-manager", prog_name="ingressmgr")
def cli() -> None:
    """Controller for the App custom resource."""


@cli.command()
def run() -> None:
    """Run the controller until SIGTERM/SIGINT."""
    from ingressmgr.app import main

    asyncio.run(main())


@cli.command()
@click.argument("manifest", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--all-kinds",
    is_flag=True,
    help="Render Service and Ingress even when the App disables them.",
)
def render(manifest: Path, all_kinds: bool) -> None:
    """Print the dependents an App manifest would produce.

    No cluster access: the App needs metadata.uid for the owner reference,
    so a placeholder is used when the file has none.
    """
    from ingressmgr.builder import build
    from ingressmgr.ownership import bind, default_scheme

    raw = yaml.safe_load(manifest.read_text())
    if not isinstance(raw, dict) or raw.get("kind", APP_KIND) != APP_KIND:
        raise click.BadParameter(f"{manifest} does not contain an {APP_KIND} object")
    raw.setdefault("metadata", {}).setdefault("uid", "00000000-0000-0000-0000-000000000000")
    raw["metadata"].setdefault("namespace", "default")
    app = App.from_object(raw)

    wanted = {
        DependentKind.WORKLOAD: True,
        DependentKind.ENDPOINT: all_kinds or app.enable_service,
        DependentKind.ROUTE: all_kinds or app.enable_ingress,
    }
    scheme = default_scheme()
    documents = []
    try:
        for kind, enabled in wanted.items():
            if enabled:
                documents.append(bind(build(kind, app), app, scheme))
    except ReconcileError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(yaml.safe_dump_all(documents, sort_keys=False), nl=False)


@cli.command()
@click.argument("key")
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"]),
    default="warning",
    show_default=True,
)
def reconcile(key: str, log_level: str) -> None:
    """Run one reconciliation pass for NAMESPACE/NAME and print the mutations."""
    setup_logging(log_level, fmt="console")
    try:
        object_key = ObjectKey.parse(key)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="KEY") from exc

    async def _once() -> None:
        from ingressmgr.app import load_kube_client
        from ingressmgr.cluster.kube import KubeClusterAPI
        from ingressmgr.reconciler import Reconciler

        api_client = await load_kube_client()
        try:
            result = await Reconciler(KubeClusterAPI(api_client)).reconcile(object_key)  # type: ignore[arg-type]
        finally:
            await api_client.close()  # type: ignore[attr-defined]
        click.echo(f"{result.key}: {result.outcome}")
        for mutation in result.mutations:
            click.echo(f"  {mutation.action} {mutation.kind} {mutation.key}")

    try:
        asyncio.run(_once())
    except ReconcileError as exc:
        raise click.ClickException(f"{type(exc).__name__}: {exc}") from exc
