"""Keyed work queue with per-key exponential back-off.

Semantics follow the client-go workqueue:

* a key sits in the queue at most once, however often it is added;
* a key handed to a worker is not handed to another one until ``done`` is
  called; adds in the meantime are replayed after ``done``;
* ``add_rate_limited`` delays a re-add by ``base * 2**failures`` (capped)
  until ``forget`` resets the failure count.
"""

from __future__ import annotations

import asyncio
from collections import deque

from ingressmgr.models.resources import ObjectKey
from ingressmgr.observability.metrics import workqueue_depth, workqueue_retries_total

# Beyond this exponent the delay is pinned to max_delay without computing 2**n.
_MAX_EXPONENT = 62


class RateLimiter:
    """Per-key exponential failure back-off."""

    def __init__(self, base_delay: float = 0.005, max_delay: float = 1000.0) -> None:
        if base_delay <= 0 or max_delay < base_delay:
            raise ValueError(f"Invalid back-off bounds: base={base_delay}, max={max_delay}")
        self._base = base_delay
        self._max = max_delay
        self._failures: dict[ObjectKey, int] = {}

    def when(self, key: ObjectKey) -> float:
        """Record a failure for *key* and return how long to wait before retrying."""
        exponent = self._failures.get(key, 0)
        self._failures[key] = exponent + 1
        if exponent > _MAX_EXPONENT:
            return self._max
        return min(self._base * (2**exponent), self._max)

    def forget(self, key: ObjectKey) -> None:
        self._failures.pop(key, None)

    def failures(self, key: ObjectKey) -> int:
        return self._failures.get(key, 0)


class WorkQueue:
    """asyncio work queue of ObjectKeys."""

    def __init__(self, rate_limiter: RateLimiter | None = None) -> None:
        self._rate_limiter = rate_limiter or RateLimiter()
        self._queue: deque[ObjectKey] = deque()
        self._dirty: set[ObjectKey] = set()
        self._processing: set[ObjectKey] = set()
        self._waiting: dict[ObjectKey, tuple[float, asyncio.TimerHandle]] = {}
        self._ready = asyncio.Event()
        self._shutting_down = False

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def shutting_down(self) -> bool:
        return self._shutting_down

    def add(self, key: ObjectKey) -> None:
        """Mark *key* as needing a pass."""
        if self._shutting_down or key in self._dirty:
            return
        self._dirty.add(key)
        if key in self._processing:
            return
        self._queue.append(key)
        workqueue_depth.set(len(self._queue))
        self._ready.set()

    def add_after(self, key: ObjectKey, delay: float) -> None:
        """Add *key* once *delay* seconds have passed.

        If the key is already waiting, the earlier deadline wins.
        """
        if self._shutting_down:
            return
        if delay <= 0:
            self.add(key)
            return

        loop = asyncio.get_running_loop()
        deadline = loop.time() + delay
        pending = self._waiting.get(key)
        if pending is not None:
            if pending[0] <= deadline:
                return
            pending[1].cancel()
        handle = loop.call_at(deadline, self._fire, key)
        self._waiting[key] = (deadline, handle)

    def _fire(self, key: ObjectKey) -> None:
        self._waiting.pop(key, None)
        self.add(key)

    def add_rate_limited(self, key: ObjectKey) -> float:
        """Re-add *key* after its back-off delay; return the delay used."""
        delay = self._rate_limiter.when(key)
        workqueue_retries_total.inc()
        self.add_after(key, delay)
        return delay

    def forget(self, key: ObjectKey) -> None:
        """Reset the failure history of *key*."""
        self._rate_limiter.forget(key)

    def retries(self, key: ObjectKey) -> int:
        return self._rate_limiter.failures(key)

    async def get(self) -> ObjectKey | None:
        """Wait for the next key; ``None`` once the queue is shut down."""
        while not self._queue:
            if self._shutting_down:
                return None
            self._ready.clear()
            await self._ready.wait()

        key = self._queue.popleft()
        workqueue_depth.set(len(self._queue))
        self._processing.add(key)
        self._dirty.discard(key)
        return key

    def done(self, key: ObjectKey) -> None:
        """Signal that the pass for *key* finished."""
        self._processing.discard(key)
        if key in self._dirty and not self._shutting_down:
            self._queue.append(key)
            workqueue_depth.set(len(self._queue))
            self._ready.set()

    def shut_down(self) -> None:
        """Stop handing out keys and wake every waiting worker."""
        self._shutting_down = True
        for _, handle in self._waiting.values():
            handle.cancel()
        self._waiting.clear()
        self._queue.clear()
        workqueue_depth.set(0)
        self._ready.set()
