"""Owner references between an App and its dependents.

A controller owner reference with ``blockOwnerDeletion`` lets the cluster's
garbage collector cascade-delete dependents once their App is gone, and lets
the controller map a dependent's watch events back to the owning App.
"""

from __future__ import annotations

import copy
from typing import Any

from ingressmgr.errors import AlreadyOwnedError, ConfigurationError
from ingressmgr.models.app import App
from ingressmgr.models.resources import APP_API_VERSION, APP_KIND, DependentKind


class Scheme:
    """Registry of kinds whose API version is known to the controller."""

    def __init__(self) -> None:
        self._kinds: dict[str, str] = {}

    def register(self, kind: str, api_version: str) -> None:
        self._kinds[kind] = api_version

    def api_version_for(self, kind: str) -> str:
        """Return the registered API version for *kind*.

        Raises:
            ConfigurationError: *kind* was never registered.
        """
        try:
            return self._kinds[kind]
        except KeyError:
            raise ConfigurationError(f"kind '{kind}' is not registered in the scheme") from None

    def __contains__(self, kind: object) -> bool:
        return kind in self._kinds


def default_scheme() -> Scheme:
    scheme = Scheme()
    scheme.register(APP_KIND, APP_API_VERSION)
    for kind in DependentKind:
        scheme.register(kind.value, kind.api_version)
    return scheme


def controller_owner(obj: dict[str, Any]) -> dict[str, Any] | None:
    """Return the owner reference flagged ``controller: true``, if any."""
    metadata = obj.get("metadata") or {}
    for ref in metadata.get("ownerReferences") or []:
        if ref.get("controller"):
            return ref
    return None


def is_controlled_by(obj: dict[str, Any], owner: App) -> bool:
    ref = controller_owner(obj)
    return ref is not None and ref.get("uid") == owner.uid


def check_controller(obj: dict[str, Any], owner: App) -> None:
    """Raise unless *obj* is uncontrolled or already controlled by *owner*.

    Raises:
        AlreadyOwnedError: another object holds the controller reference.
    """
    existing = controller_owner(obj)
    if existing is None or existing.get("uid") == owner.uid:
        return
    metadata = obj.get("metadata") or {}
    raise AlreadyOwnedError(
        kind=str(obj.get("kind", "")),
        name=str(metadata.get("name", "")),
        owner_kind=str(existing.get("kind", "")),
        owner_name=str(existing.get("name", "")),
    )


def bind(definition: dict[str, Any], owner: App, scheme: Scheme) -> dict[str, Any]:
    """Return a copy of *definition* controlled by *owner*.

    An existing reference with the owner's UID is replaced; other non-controller
    references are kept.

    Raises:
        ConfigurationError: owner kind unknown to *scheme*, owner without UID,
            or the definition is in another namespace.
        AlreadyOwnedError: another object already controls the definition.
    """
    api_version = scheme.api_version_for(owner.kind)
    if not owner.uid:
        raise ConfigurationError(f"{owner.kind} '{owner.key}' has no UID; cannot reference it as owner")

    bound = copy.deepcopy(definition)
    metadata = bound.setdefault("metadata", {})
    namespace = metadata.get("namespace") or owner.namespace
    if namespace != owner.namespace:
        raise ConfigurationError(
            f"cross-namespace owner references are not allowed: "
            f"owner {owner.key} is in '{owner.namespace}', object in '{namespace}'"
        )

    check_controller(bound, owner)

    ref = {
        "apiVersion": api_version,
        "kind": owner.kind,
        "name": owner.name,
        "uid": owner.uid,
        "controller": True,
        "blockOwnerDeletion": True,
    }
    refs = [r for r in metadata.get("ownerReferences") or [] if r.get("uid") != owner.uid]
    refs.append(ref)
    metadata["ownerReferences"] = refs
    return bound
