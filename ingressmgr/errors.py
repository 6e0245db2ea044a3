"""Error taxonomy shared by the builder, binder, cluster client and reconciler.

Every error carries a ``retryable`` flag. The controller requeues retryable
errors with back-off. Only templating and configuration errors are not
retryable: they are dropped until the App changes again.
"""

from __future__ import annotations


class ReconcileError(Exception):
    """Base class for every error a reconciliation pass may raise."""

    retryable: bool = False


class TemplatingError(ReconcileError):
    """A manifest template could not be rendered from the App spec."""

    def __init__(self, template: str, detail: str) -> None:
        super().__init__(f"Template '{template}' failed to render: {detail}")
        self.template = template
        self.detail = detail


class ConfigurationError(ReconcileError):
    """Owner references cannot be attached (scheme or identity problem)."""


class AlreadyOwnedError(ConfigurationError):
    """The object is already controlled by a different owner."""

    def __init__(self, kind: str, name: str, owner_kind: str, owner_name: str) -> None:
        super().__init__(f"{kind} '{name}' is already controlled by {owner_kind} '{owner_name}'")
        self.kind = kind
        self.name = name
        self.owner_kind = owner_kind
        self.owner_name = owner_name


class ClusterAPIError(ReconcileError):
    """Non-success response from the cluster API."""

    retryable = True

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class NotFoundError(ClusterAPIError):
    """The requested object does not exist."""


class ConflictError(ClusterAPIError):
    """Create raced an existing object, or update carried a stale resourceVersion."""


class TransientClusterError(ClusterAPIError):
    """Network or availability failure; safe to retry later."""
