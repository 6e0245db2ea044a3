"""Event routing: watches, work queue and reconcile workers.

Submodules:
    queue      -- WorkQueue / RateLimiter: deduplicating keyed queue with back-off.
    mapping    -- keys_for_event: watch event -> App identities.
    controller -- Controller: worker pool applying the retry policy.
    watcher    -- ResourceWatcher: list-then-watch loop per kind.
"""

from ingressmgr.controller.controller import Controller
from ingressmgr.controller.mapping import WATCHED_KINDS, keys_for_event
from ingressmgr.controller.queue import RateLimiter, WorkQueue

__all__ = [
    "Controller",
    "RateLimiter",
    "WATCHED_KINDS",
    "WorkQueue",
    "keys_for_event",
]
