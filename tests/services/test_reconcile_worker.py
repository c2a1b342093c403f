"""Tests for reqmanager.services.workers -- ReconcileWorker.

Pattern: no threads are started except in the lifecycle tests.  The
resync loop is run for exactly one iteration by patching
``_stop_event.wait`` to set the stop event, and worker loops are run
against a queue that is already shut down.
"""

from __future__ import annotations

import dataclasses
from unittest.mock import MagicMock

from fakes import FakeCertificateRepository, issuing, make_certificate

from reqmanager.app.errors import StoreOperationFailed
from reqmanager.app.shutdown import ShutdownCoordinator
from reqmanager.config.settings import _build_controller
from reqmanager.core.queue import WorkQueue
from reqmanager.core.types import ReconcileOutcome
from reqmanager.logging.setup import _reconcile_key, _worker_id
from reqmanager.metrics.collector import (
    LEADER,
    QUEUE_DEPTH,
    RECONCILE_ERRORS_TOTAL,
    RECONCILE_TOTAL,
    WORKER_RESYNCS_TOTAL,
    MetricsCollector,
)
from reqmanager.services.workers import ReconcileWorker

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _make_worker(
    manager=None,
    certificates=None,
    metrics=None,
    db=None,
    shutdown_coordinator=None,
    **controller,
) -> ReconcileWorker:
    settings = _build_controller({"workers": 2, "resync_seconds": 10, **controller})
    return ReconcileWorker(
        manager or MagicMock(),
        certificates or FakeCertificateRepository(),
        WorkQueue(
            base_delay=settings.base_backoff_seconds,
            max_delay=settings.max_backoff_seconds,
            clock=_Clock(),
        ),
        settings,
        metrics=metrics,
        db=db,
        shutdown_coordinator=shutdown_coordinator,
    )


def _run_one_iteration(worker) -> list:
    """Run the resync loop once; returns the timeouts passed to wait()."""
    timeouts = []
    original_wait = worker._stop_event.wait

    def _wait_then_stop(timeout=None):
        timeouts.append(timeout)
        worker._stop_event.set()

    worker._stop_event.clear()
    worker._stop_event.wait = _wait_then_stop
    worker._resync_loop()
    worker._stop_event.wait = original_wait
    return timeouts


def _lock_db(*, acquired: bool):
    """A database whose pooled connection answers the try-lock with *acquired*."""
    db = MagicMock()
    conn = db.connection.return_value.__enter__.return_value
    conn.execute.return_value.fetchone.return_value = (acquired,)
    return db, conn


# ---------------------------------------------------------------------------
# process()
# ---------------------------------------------------------------------------


class TestProcess:
    def test_success_forgets_failures_and_counts(self):
        metrics = MetricsCollector()
        manager = MagicMock()
        manager.process_item.return_value = ReconcileOutcome.CONVERGED
        worker = _make_worker(manager, metrics=metrics)
        worker._queue.add_rate_limited("testns/test")

        assert worker.process("testns/test") == ReconcileOutcome.CONVERGED
        assert worker._queue.failures("testns/test") == 0
        assert metrics.get(RECONCILE_TOTAL, labels={"outcome": "converged"}) == 1

    def test_reconcile_error_requeues_with_backoff(self):
        metrics = MetricsCollector()
        manager = MagicMock()
        manager.process_item.side_effect = StoreOperationFailed("list", "x", RuntimeError("db"))
        worker = _make_worker(manager, metrics=metrics)

        assert worker.process("testns/test") is None
        assert worker.process("testns/test") is None
        assert worker._queue.failures("testns/test") == 2
        assert len(worker._queue) == 0  # delayed, not ready
        assert (
            metrics.get(RECONCILE_ERRORS_TOTAL, labels={"reason": "storeOperationFailed"}) == 2
        )

    def test_delayed_retry_becomes_ready(self):
        manager = MagicMock()
        manager.process_item.side_effect = StoreOperationFailed("get", "x")
        worker = _make_worker(manager, base_backoff_seconds=1)
        worker.process("testns/test")

        worker._queue._clock.now += 1
        assert worker._queue.get(timeout=0) == "testns/test"

    def test_unexpected_error_is_contained(self):
        metrics = MetricsCollector()
        manager = MagicMock()
        manager.process_item.side_effect = RuntimeError("bug")
        worker = _make_worker(manager, metrics=metrics)

        assert worker.process("testns/test") is None
        assert worker._queue.failures("testns/test") == 1
        assert metrics.get(RECONCILE_ERRORS_TOTAL, labels={"reason": "unexpected"}) == 1

    def test_runs_inside_reconcile_context(self):
        seen = {}

        def capture(key):
            seen["key"] = _reconcile_key.get()
            seen["worker"] = _worker_id.get()
            return ReconcileOutcome.SKIPPED

        manager = MagicMock()
        manager.process_item.side_effect = capture
        worker = _make_worker(manager)

        worker.process("testns/test", worker_id=3)

        assert seen == {"key": "testns/test", "worker": 3}
        assert _reconcile_key.get() is None

    def test_tracked_by_shutdown_coordinator(self):
        coordinator = ShutdownCoordinator()
        in_flight = []
        manager = MagicMock()
        manager.process_item.side_effect = lambda key: (
            in_flight.append(coordinator.in_flight_count) or ReconcileOutcome.SKIPPED
        )
        worker = _make_worker(manager, shutdown_coordinator=coordinator)

        worker.process("testns/test")

        assert in_flight == [1]
        assert coordinator.in_flight_count == 0


# ---------------------------------------------------------------------------
# Worker loop
# ---------------------------------------------------------------------------


class TestWorkerLoop:
    def test_drains_queue_then_exits_on_shutdown(self):
        manager = MagicMock()
        manager.process_item.return_value = ReconcileOutcome.SKIPPED
        worker = _make_worker(manager)
        worker.enqueue("testns/a")
        worker.enqueue("testns/b")
        worker._queue.shutdown()

        worker._worker_loop(0)

        assert [c.args[0] for c in manager.process_item.call_args_list] == [
            "testns/a",
            "testns/b",
        ]

    def test_key_released_after_failure(self):
        manager = MagicMock()
        manager.process_item.side_effect = RuntimeError("bug")
        worker = _make_worker(manager)
        worker.enqueue("testns/a")
        worker._queue.shutdown()

        worker._worker_loop(0)

        assert worker._queue._processing == set()


# ---------------------------------------------------------------------------
# Resync and leader election
# ---------------------------------------------------------------------------


class TestResync:
    def test_enqueues_issuing_certificates_only(self):
        certificates = FakeCertificateRepository(
            make_certificate(name="a"),
            make_certificate(name="b", conditions=(issuing("False"),)),
            make_certificate(name="c", conditions=()),
            make_certificate(name="d", namespace="other"),
        )
        metrics = MetricsCollector()
        worker = _make_worker(certificates=certificates, metrics=metrics)

        assert worker._resync() == 2
        assert len(worker._queue) == 2
        assert metrics.get(WORKER_RESYNCS_TOTAL) == 1
        assert metrics.get(QUEUE_DEPTH) == 2

    def test_namespace_filter(self):
        certificates = FakeCertificateRepository(
            make_certificate(name="a"),
            make_certificate(name="d", namespace="other"),
        )
        worker = _make_worker(certificates=certificates, namespaces=["other"])

        worker._resync()

        assert worker._queue.get(timeout=0) == "other/d"
        assert len(worker._queue) == 0

    def test_repeated_resync_does_not_duplicate(self):
        certificates = FakeCertificateRepository(make_certificate())
        worker = _make_worker(certificates=certificates)
        worker._resync()
        worker._resync()
        assert len(worker._queue) == 1

    def test_loop_without_db_is_always_leader(self):
        metrics = MetricsCollector()
        certificates = FakeCertificateRepository(make_certificate())
        worker = _make_worker(certificates=certificates, metrics=metrics)

        timeouts = _run_one_iteration(worker)

        assert timeouts == [10]
        assert worker.is_leader is True
        assert metrics.get(LEADER) == 1
        assert len(worker._queue) == 1

    def test_not_leader_skips_resync(self):
        metrics = MetricsCollector()
        db, conn = _lock_db(acquired=False)
        certificates = MagicMock()
        worker = _make_worker(certificates=certificates, metrics=metrics, db=db)

        _run_one_iteration(worker)

        certificates.find_issuing.assert_not_called()
        assert worker.is_leader is False
        assert metrics.get(LEADER) == 0
        assert conn.execute.call_count == 1

    def test_lock_and_unlock_share_one_connection(self):
        db, conn = _lock_db(acquired=True)
        worker = _make_worker(db=db)

        _run_one_iteration(worker)

        assert worker.is_leader is True
        db.connection.assert_called_once_with()
        lock_sql, unlock_sql = (c[0][0] for c in conn.execute.call_args_list)
        assert "pg_try_advisory_lock" in lock_sql
        assert "pg_advisory_unlock" in unlock_sql
        assert conn.execute.call_args[0][1] == (ReconcileWorker._ADVISORY_LOCK_ID,)
        db.fetch_value.assert_not_called()
        db.execute.assert_not_called()

    def test_lock_released_before_waiting(self):
        db, conn = _lock_db(acquired=True)
        worker = _make_worker(db=db)
        calls_at_wait = []

        def _wait_then_stop(timeout=None):
            calls_at_wait.append(conn.execute.call_count)
            worker._stop_event.set()

        worker._stop_event.wait = _wait_then_stop
        worker._resync_loop()

        assert calls_at_wait == [2]

    def test_lock_released_when_resync_fails(self):
        db, conn = _lock_db(acquired=True)
        certificates = MagicMock()
        certificates.find_issuing.side_effect = RuntimeError("db down")
        worker = _make_worker(certificates=certificates, db=db)

        assert _run_one_iteration(worker) == [20]
        assert "pg_advisory_unlock" in conn.execute.call_args[0][0]

    def test_lock_query_failure_means_not_leader(self):
        db, conn = _lock_db(acquired=True)
        conn.execute.side_effect = RuntimeError("db down")
        worker = _make_worker(db=db)

        assert _run_one_iteration(worker) == [10]
        assert worker.is_leader is False

    def test_checkout_failure_means_not_leader(self):
        db = MagicMock()
        db.connection.side_effect = RuntimeError("pool exhausted")
        worker = _make_worker(db=db)

        _run_one_iteration(worker)

        assert worker.is_leader is False

    def test_leader_election_disabled(self):
        db = MagicMock()
        worker = _make_worker(db=db, leader_election=False)

        _run_one_iteration(worker)

        db.connection.assert_not_called()
        assert worker.is_leader is True

    def test_resync_failure_backs_off(self):
        certificates = MagicMock()
        certificates.find_issuing.side_effect = RuntimeError("db down")
        worker = _make_worker(certificates=certificates)

        timeouts = [_run_one_iteration(worker)[0] for _ in range(3)]

        assert worker._consecutive_failures == 3
        assert timeouts == [20, 40, 80]

    def test_resync_backoff_cap(self):
        certificates = MagicMock()
        certificates.find_issuing.side_effect = RuntimeError("db down")
        worker = _make_worker(certificates=certificates)
        worker._consecutive_failures = 10

        assert _run_one_iteration(worker) == [300]

    def test_resync_success_resets_failures(self):
        worker = _make_worker()
        worker._consecutive_failures = 4

        _run_one_iteration(worker)

        assert worker._consecutive_failures == 0


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    def test_start_and_stop(self):
        worker = _make_worker(certificates=FakeCertificateRepository())
        assert worker.is_running is False

        worker.start()
        try:
            assert worker.is_running is True
            names = sorted(t.name for t in worker._threads)
            assert names == [
                "reqmanager-resync",
                "reqmanager-worker-0",
                "reqmanager-worker-1",
            ]
        finally:
            worker.stop()

        assert worker.is_running is False
        assert worker._queue.shutting_down is True

    def test_start_twice_is_noop(self):
        worker = _make_worker()
        worker.start()
        try:
            threads = list(worker._threads)
            worker.start()
            assert worker._threads == threads
        finally:
            worker.stop()

    def test_stop_before_start(self):
        worker = _make_worker()
        worker.stop()
        assert worker.is_running is False


def test_default_controller_settings():
    settings = _build_controller({})
    assert dataclasses.is_dataclass(settings)
    assert settings.workers == 4
    assert settings.private_key_secret_key == "tls.key"
