"""Reconciliation pass outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from ingressmgr.models.resources import DependentKind, ObjectKey


class Action(StrEnum):
    """Mutation issued against a dependent."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class Outcome(StrEnum):
    """How a pass that did not raise ended."""

    CONVERGED = "converged"
    APP_NOT_FOUND = "app_not_found"


@dataclass(frozen=True)
class Mutation:
    kind: DependentKind
    action: Action
    key: ObjectKey


@dataclass
class ReconcileResult:
    """Record of one successful reconciliation pass.

    ``mutations`` lists what was sent to the cluster, in order. An empty
    list means the pass observed everything already converged.
    """

    key: ObjectKey
    outcome: Outcome = Outcome.CONVERGED
    mutations: list[Mutation] = field(default_factory=list)
    duration_ms: float = 0.0

    def record(self, kind: DependentKind, action: Action, key: ObjectKey) -> None:
        self.mutations.append(Mutation(kind=kind, action=action, key=key))
