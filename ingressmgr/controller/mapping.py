"""Map watch events to the App identities that must be reconciled."""

from __future__ import annotations

from typing import Any

from ingressmgr.models.resources import APP_GROUP, APP_KIND, DependentKind, ObjectKey
from ingressmgr.ownership import controller_owner

WATCHED_KINDS: tuple[str, ...] = (APP_KIND, *(kind.value for kind in DependentKind))


def _group_of(api_version: str) -> str:
    return api_version.split("/", 1)[0] if "/" in api_version else ""


def keys_for_event(kind: str, obj: dict[str, Any]) -> list[ObjectKey]:
    """Return the App keys affected by a change to *obj* of *kind*.

    An App maps to itself. A dependent maps to its controlling App, if the
    controller reference points at an App of our API group; anything else
    is not ours and maps to nothing.
    """
    key = ObjectKey.of(obj)
    if not key.name:
        return []
    if kind == APP_KIND:
        return [key]

    ref = controller_owner(obj)
    if ref is None or ref.get("kind") != APP_KIND:
        return []
    if _group_of(str(ref.get("apiVersion", ""))) != APP_GROUP:
        return []
    owner_name = ref.get("name")
    if not owner_name:
        return []
    return [ObjectKey(namespace=key.namespace, name=str(owner_name))]
