"""Tests for the /livez, /healthz and /readyz infrastructure endpoints."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

from flask import Flask

from reqmanager.app.factory import _register_health
from reqmanager.app.shutdown import ShutdownCoordinator


def _make_app(container=None, shutdown_coordinator=None):
    """Create a minimal Flask app with health routes registered."""
    app = Flask("test_health")
    if container is not None:
        app.extensions["container"] = container
    if shutdown_coordinator is not None:
        app.extensions["shutdown_coordinator"] = shutdown_coordinator
    with patch("reqmanager.__version__", "0.0.0-test"):
        _register_health(app)
    return app


def _make_container(*, db_ok=True, running=True, leader=True, queue_depth=0):
    """Build a mock Container with a database, worker and queue."""
    container = MagicMock()
    if db_ok:
        container.db.fetch_value.return_value = 1
    else:
        container.db.fetch_value.side_effect = RuntimeError("connection refused")
    container.worker.is_running = running
    container.worker.is_leader = leader
    container.queue.__len__.return_value = queue_depth
    return container


class TestLivez:
    def test_always_alive(self):
        resp = _make_app().test_client().get("/livez")
        assert resp.status_code == 200
        assert resp.get_json() == {"alive": True, "version": "0.0.0-test"}


class TestHealthz:
    def test_without_container(self):
        resp = _make_app().test_client().get("/healthz")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "ok"

    def test_healthy(self):
        app = _make_app(_make_container(queue_depth=3), ShutdownCoordinator())
        resp = app.test_client().get("/healthz")

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["checks"] == {"database": "connected"}
        assert body["workers"] == {"reconcile": "alive", "leader": True, "queue_depth": 3}
        assert body["shutting_down"] is False
        assert body["in_flight"] == 0

    def test_database_down(self):
        resp = _make_app(_make_container(db_ok=False)).test_client().get("/healthz")
        assert resp.status_code == 503
        body = resp.get_json()
        assert body["status"] == "degraded"
        assert body["checks"]["database"] == "disconnected"

    def test_workers_dead(self):
        resp = _make_app(_make_container(running=False)).test_client().get("/healthz")
        assert resp.status_code == 503
        assert resp.get_json()["workers"]["reconcile"] == "dead"

    def test_follower_is_healthy(self):
        resp = _make_app(_make_container(leader=False)).test_client().get("/healthz")
        assert resp.status_code == 200
        assert resp.get_json()["workers"]["leader"] is False


class TestReadyz:
    def test_not_ready_without_container(self):
        resp = _make_app().test_client().get("/readyz")
        assert resp.status_code == 503
        assert resp.get_json()["reason"] == "Container not initialized"

    def test_ready(self):
        resp = _make_app(_make_container()).test_client().get("/readyz")
        assert resp.status_code == 200
        assert resp.get_json() == {"ready": True}

    def test_not_ready_while_shutting_down(self):
        sc = ShutdownCoordinator(graceful_timeout=0)
        sc.initiate()
        resp = _make_app(_make_container(), sc).test_client().get("/readyz")
        assert resp.status_code == 503
        assert resp.get_json()["reason"] == "Shutting down"

    def test_not_ready_when_database_down(self):
        resp = _make_app(_make_container(db_ok=False)).test_client().get("/readyz")
        assert resp.status_code == 503
        assert resp.get_json()["reason"] == "Database not connected"
