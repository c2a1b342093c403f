"""Reconcile workers.

A pool of daemon threads pulls Certificate keys from a
:class:`~reqmanager.core.queue.WorkQueue` and runs one
:meth:`RequestManager.process_item` pass per key.  A separate resync
thread periodically enqueues every Certificate that is issuing.

When a database is provided, the resync thread uses
``pg_try_advisory_lock`` so that only one instance across the cluster
feeds its queue in a given cycle.
"""

from __future__ import annotations

import contextlib
import logging
import threading
from typing import TYPE_CHECKING

from reqmanager.app.errors import ReconcileError
from reqmanager.core.keys import join_key
from reqmanager.core.queue import QueueShutDown
from reqmanager.logging import reconcile_context
from reqmanager.metrics.collector import (
    LEADER,
    QUEUE_DEPTH,
    RECONCILE_ERRORS_TOTAL,
    RECONCILE_TOTAL,
    WORKER_RESYNCS_TOTAL,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from reqmanager.app.shutdown import ShutdownCoordinator
    from reqmanager.config.settings import ControllerSettings
    from reqmanager.core.queue import WorkQueue
    from reqmanager.core.types import ReconcileOutcome
    from reqmanager.metrics.collector import MetricsCollector
    from reqmanager.repositories.certificate import CertificateRepository
    from reqmanager.services.request_manager import RequestManager

log = logging.getLogger(__name__)

_GET_TIMEOUT = 1.0
_MAX_RESYNC_BACKOFF = 300


class ReconcileWorker:
    """Daemon threads that reconcile queued Certificate keys.

    Parameters
    ----------
    manager:
        Runs a single reconcile pass.
    certificates:
        Used by the resync thread to find issuing Certificates.
    queue:
        Shared work queue; also owns the per-key failure backoff.
    settings:
        Controller settings (thread count, resync period, namespaces).
    metrics:
        Optional :class:`MetricsCollector`.
    db:
        Optional database handle used for leader election.
    shutdown_coordinator:
        Optional coordinator that tracks in-flight passes.

    """

    # Advisory lock ID for leader election (arbitrary but stable)
    _ADVISORY_LOCK_ID = 731_001

    def __init__(
        self,
        manager: RequestManager,
        certificates: CertificateRepository,
        queue: WorkQueue,
        settings: ControllerSettings,
        metrics: MetricsCollector | None = None,
        db=None,
        shutdown_coordinator: ShutdownCoordinator | None = None,
    ) -> None:
        self._manager = manager
        self._certificates = certificates
        self._queue = queue
        self._settings = settings
        self._metrics = metrics
        self._db = db
        self._shutdown = shutdown_coordinator
        self._stop_event = threading.Event()
        self._threads: list[threading.Thread] = []
        self._consecutive_failures = 0
        self._is_leader = False

    @property
    def is_running(self) -> bool:
        return any(t.is_alive() for t in self._threads)

    @property
    def is_leader(self) -> bool:
        """True if the last resync cycle held the leader lock."""
        return self._is_leader

    def start(self) -> None:
        """Start the resync thread and the worker pool."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._threads = [
            threading.Thread(
                target=self._resync_loop,
                name="reqmanager-resync",
                daemon=True,
            ),
        ]
        self._threads.extend(
            threading.Thread(
                target=self._worker_loop,
                args=(worker_id,),
                name=f"reqmanager-worker-{worker_id}",
                daemon=True,
            )
            for worker_id in range(self._settings.workers)
        )
        for thread in self._threads:
            thread.start()
        log.info(
            "Reconcile worker started (workers=%d, resync=%ds)",
            self._settings.workers,
            self._settings.resync_seconds,
        )

    def stop(self) -> None:
        """Signal all threads to stop and wait for them."""
        self._stop_event.set()
        self._queue.shutdown()
        for thread in self._threads:
            thread.join(timeout=_GET_TIMEOUT + 5)
        if self._threads:
            log.info("Reconcile worker stopped")
        self._threads = []

    def enqueue(self, key: str) -> None:
        self._queue.add(key)

    # -- leader election ------------------------------------------------------

    @contextlib.contextmanager
    def _leadership(self) -> Iterator[bool]:
        """Hold the leader lock for one resync cycle; yields whether it was won.

        A session advisory lock belongs to the backend that took it, so the
        try-lock and the unlock run on one connection checked out of the
        pool for the whole cycle.
        """
        if self._db is None or not self._settings.leader_election:
            yield True
            return
        with contextlib.ExitStack() as stack:
            try:
                conn = stack.enter_context(self._db.connection())
                row = conn.execute(
                    "SELECT pg_try_advisory_lock(%s)",
                    (self._ADVISORY_LOCK_ID,),
                ).fetchone()
            except Exception:
                log.debug("Advisory lock check failed, skipping this cycle")
                row = None
            if not (row and row[0]):
                yield False
                return
            try:
                yield True
            finally:
                # a broken connection is discarded by the pool, which ends the session lock
                with contextlib.suppress(Exception):
                    conn.execute(
                        "SELECT pg_advisory_unlock(%s)",
                        (self._ADVISORY_LOCK_ID,),
                    )

    def _set_leader(self, value: bool) -> None:
        self._is_leader = value
        if self._metrics:
            self._metrics.set_gauge(LEADER, 1 if value else 0)

    # -- resync ---------------------------------------------------------------

    def _resync_loop(self) -> None:
        while not self._stop_event.is_set():
            with self._leadership() as leader:
                self._set_leader(leader)
                wait = self._run_resync() if leader else self._settings.resync_seconds
            self._stop_event.wait(timeout=wait)

    def _run_resync(self) -> int:
        """Resync once; returns how long to wait before the next cycle."""
        try:
            self._resync()
        except Exception:
            self._consecutive_failures += 1
            log.exception(
                "Resync failed (consecutive failures: %d)",
                self._consecutive_failures,
            )
            return min(
                self._settings.resync_seconds * (2**self._consecutive_failures),
                _MAX_RESYNC_BACKOFF,
            )
        self._consecutive_failures = 0
        return self._settings.resync_seconds

    def _resync(self) -> int:
        """Enqueue every issuing Certificate; returns how many."""
        certificates = self._certificates.find_issuing(self._settings.namespaces)
        for certificate in certificates:
            self._queue.add(join_key(certificate.namespace, certificate.name))
        log.debug("Resync enqueued %d issuing certificates", len(certificates))
        if self._metrics:
            self._metrics.increment(WORKER_RESYNCS_TOTAL)
            self._metrics.set_gauge(QUEUE_DEPTH, len(self._queue))
        return len(certificates)

    # -- workers --------------------------------------------------------------

    def _worker_loop(self, worker_id: int) -> None:
        while True:
            try:
                key = self._queue.get(timeout=_GET_TIMEOUT)
            except QueueShutDown:
                return
            if key is None:
                continue
            try:
                self.process(key, worker_id)
            finally:
                self._queue.done(key)

    def process(self, key: str, worker_id: int | None = None) -> ReconcileOutcome | None:
        """Run one pass for *key*, re-queueing it with backoff on failure.

        Returns the outcome, or ``None`` if the pass failed.
        """
        with reconcile_context(key, worker_id), self._track(key):
            try:
                outcome = self._manager.process_item(key)
            except ReconcileError as exc:
                delay = self._queue.add_rate_limited(key)
                log.warning(
                    "Reconcile failed (%s): %s; retrying in %.1fs",
                    exc.reason,
                    exc.detail,
                    delay,
                )
                self._count_error(exc.reason)
                return None
            except Exception:
                delay = self._queue.add_rate_limited(key)
                log.exception("Unexpected reconcile error; retrying in %.1fs", delay)
                self._count_error("unexpected")
                return None

            self._queue.forget(key)
            log.debug("Reconcile finished: %s", outcome)
            if self._metrics:
                self._metrics.increment(RECONCILE_TOTAL, labels={"outcome": outcome.value})
            return outcome

    def _track(self, key: str):
        if self._shutdown is None:
            return contextlib.nullcontext()
        return self._shutdown.track(f"reconcile {key}")

    def _count_error(self, reason: str) -> None:
        if self._metrics:
            self._metrics.increment(RECONCILE_ERRORS_TOTAL, labels={"reason": reason})
