"""Deduplicating work queue with per-key failure backoff.

Guarantees that a key is handed to at most one worker at a time:

* adding a key that is already queued is a no-op;
* adding a key that is being processed marks it *dirty*, and it is
  re-queued once the current holder calls :meth:`WorkQueue.done`.

Failed keys are re-added through :meth:`WorkQueue.add_rate_limited`,
which defers them by ``base * 2**failures`` seconds (capped).  The
counter is reset with :meth:`WorkQueue.forget`.

Usage::

    queue = WorkQueue(base_delay=0.5, max_delay=300)
    queue.add("default/my-cert")

    key = queue.get()
    try:
        process(key)
        queue.forget(key)
    except Exception:
        queue.add_rate_limited(key)
    finally:
        queue.done(key)
"""

from __future__ import annotations

import heapq
import itertools
import threading
import time
from collections import deque


class QueueShutDown(Exception):
    """Raised by :meth:`WorkQueue.get` once the queue is shut down."""


class WorkQueue:
    """Thread-safe FIFO of string keys.

    Parameters
    ----------
    base_delay:
        Delay in seconds applied to a key's first failure.
    max_delay:
        Upper bound for the exponential failure delay.
    clock:
        Monotonic time source, injectable for tests.

    """

    def __init__(
        self,
        base_delay: float = 0.5,
        max_delay: float = 300.0,
        clock=time.monotonic,
    ) -> None:
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._clock = clock
        self._cond = threading.Condition()
        self._queue: deque[str] = deque()
        self._queued: set[str] = set()
        self._processing: set[str] = set()
        self._dirty: set[str] = set()
        self._failures: dict[str, int] = {}
        self._delayed: list[tuple[float, int, str]] = []
        self._seq = itertools.count()
        self._shutting_down = False

    # -- adding ---------------------------------------------------------------

    def add(self, key: str) -> None:
        """Queue *key* for processing unless it is already pending."""
        with self._cond:
            self._add_locked(key)

    def add_after(self, key: str, delay: float) -> None:
        """Queue *key* once *delay* seconds have elapsed."""
        if delay <= 0:
            self.add(key)
            return
        with self._cond:
            if self._shutting_down:
                return
            heapq.heappush(
                self._delayed,
                (self._clock() + delay, next(self._seq), key),
            )
            self._cond.notify()

    def add_rate_limited(self, key: str) -> float:
        """Re-queue a failed *key* with exponential backoff.

        Returns the delay that was applied.
        """
        with self._cond:
            failures = self._failures.get(key, 0)
            self._failures[key] = failures + 1
        delay = min(self._base_delay * (2**failures), self._max_delay)
        self.add_after(key, delay)
        return delay

    def forget(self, key: str) -> None:
        """Reset the failure counter of *key*."""
        with self._cond:
            self._failures.pop(key, None)

    def failures(self, key: str) -> int:
        """Number of consecutive failures recorded for *key*."""
        with self._cond:
            return self._failures.get(key, 0)

    # -- consuming ------------------------------------------------------------

    def get(self, timeout: float | None = None) -> str | None:
        """Block until a key is available and mark it as processing.

        Returns ``None`` when *timeout* elapses first.  Raises
        :class:`QueueShutDown` once :meth:`shutdown` was called and no
        ready key remains.
        """
        deadline = None if timeout is None else self._clock() + timeout
        with self._cond:
            while True:
                self._promote_delayed_locked()
                if self._queue:
                    key = self._queue.popleft()
                    self._queued.discard(key)
                    self._processing.add(key)
                    return key
                if self._shutting_down:
                    raise QueueShutDown
                wait = self._next_wait_locked(deadline)
                if wait is not None and wait <= 0:
                    return None
                self._cond.wait(timeout=wait)

    def done(self, key: str) -> None:
        """Release *key*; re-queue it if it was added while processing."""
        with self._cond:
            self._processing.discard(key)
            if key in self._dirty:
                self._dirty.discard(key)
                self._add_locked(key)

    # -- lifecycle ------------------------------------------------------------

    def shutdown(self) -> None:
        """Stop accepting keys and wake every waiting consumer."""
        with self._cond:
            self._shutting_down = True
            self._cond.notify_all()

    @property
    def shutting_down(self) -> bool:
        with self._cond:
            return self._shutting_down

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)

    # -- internals ------------------------------------------------------------

    def _add_locked(self, key: str) -> None:
        if self._shutting_down:
            return
        if key in self._processing:
            self._dirty.add(key)
            return
        if key in self._queued:
            return
        self._queued.add(key)
        self._queue.append(key)
        self._cond.notify()

    def _promote_delayed_locked(self) -> None:
        now = self._clock()
        while self._delayed and self._delayed[0][0] <= now:
            _, _, key = heapq.heappop(self._delayed)
            self._add_locked(key)

    def _next_wait_locked(self, deadline: float | None) -> float | None:
        now = self._clock()
        candidates = []
        if self._delayed:
            candidates.append(self._delayed[0][0] - now)
        if deadline is not None:
            candidates.append(deadline - now)
        if not candidates:
            return None
        return min(candidates)
