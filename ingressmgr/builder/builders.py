"""Per-kind builders mapping an App to the definition of one dependent.

Builders are pure: no cluster I/O, and building twice from the same App
yields equal definitions. Identity is always the owning App's name and
namespace.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import yaml

from ingressmgr.builder.render import render
from ingressmgr.errors import TemplatingError
from ingressmgr.models.app import App
from ingressmgr.models.resources import DependentKind

Definition = dict[str, Any]


def _load(kind: DependentKind, app: App) -> Definition:
    raw = render(kind.template_name, app)
    try:
        definition = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise TemplatingError(kind.template_name, f"rendered output is not valid YAML: {exc}") from exc

    if not isinstance(definition, dict):
        raise TemplatingError(kind.template_name, "rendered output is not a mapping")
    if definition.get("kind") != kind.value:
        raise TemplatingError(
            kind.template_name,
            f"rendered kind {definition.get('kind')!r} does not match {kind.value!r}",
        )
    metadata = definition.get("metadata") or {}
    if metadata.get("name") != app.name or metadata.get("namespace") != app.namespace:
        raise TemplatingError(kind.template_name, "rendered identity does not match the App")
    return definition


def build_workload(app: App) -> Definition:
    return _load(DependentKind.WORKLOAD, app)


def build_endpoint(app: App) -> Definition:
    return _load(DependentKind.ENDPOINT, app)


def build_route(app: App) -> Definition:
    return _load(DependentKind.ROUTE, app)


BUILDERS: dict[DependentKind, Callable[[App], Definition]] = {
    DependentKind.WORKLOAD: build_workload,
    DependentKind.ENDPOINT: build_endpoint,
    DependentKind.ROUTE: build_route,
}


def build(kind: DependentKind, app: App) -> Definition:
    """Build the definition of *kind* for *app*.

    Raises:
        TemplatingError: the App spec cannot satisfy the template.
    """
    return BUILDERS[kind](app)


def container_image(definition: Definition) -> str | None:
    """Return the first container's image of a Deployment-shaped object."""
    try:
        containers = definition["spec"]["template"]["spec"]["containers"]
    except (KeyError, TypeError):
        return None
    if not containers:
        return None
    image = containers[0].get("image")
    return str(image) if image is not None else None
