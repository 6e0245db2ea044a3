"""Prometheus metrics for the reconciliation loop.

All collectors register on the default registry; ``/metrics`` exposes them.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

reconcile_total = Counter(
    "ingressmgr_reconcile_total",
    "Reconciliation passes that completed without raising",
    ["outcome"],
)

reconcile_errors_total = Counter(
    "ingressmgr_reconcile_errors_total",
    "Reconciliation passes that raised, by error class",
    ["error"],
)

reconcile_duration_seconds = Histogram(
    "ingressmgr_reconcile_duration_seconds",
    "Wall time of a reconciliation pass",
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

dependent_mutations_total = Counter(
    "ingressmgr_dependent_mutations_total",
    "Create/update/delete calls issued for dependent resources",
    ["kind", "action"],
)

workqueue_depth = Gauge(
    "ingressmgr_workqueue_depth",
    "Keys waiting in the work queue",
)

workqueue_retries_total = Counter(
    "ingressmgr_workqueue_retries_total",
    "Keys requeued with rate-limited back-off",
)

watch_restarts_total = Counter(
    "ingressmgr_watch_restarts_total",
    "Watch stream reconnects, by resource kind and reason",
    ["kind", "reason"],
)
