"""Flask application factory for the request manager.

The HTTP surface is small (health probes and metrics).  The factory
also owns the lifecycle of the reconcile workers so that gunicorn and
the development server start and stop them the same way.

Usage::

    from reqmanager.app import create_app
    from reqmanager.config import get_config
    from reqmanager.db import init_database

    db  = init_database(get_config().settings.database)
    app = create_app(config=get_config(), database=db)
"""

from __future__ import annotations

import atexit
import logging
from typing import TYPE_CHECKING

from flask import Flask, jsonify

if TYPE_CHECKING:
    from flask.typing import ResponseReturnValue
    from pypgkit import Database

    from reqmanager.config.reqmanager_config import ReqManagerConfig

log = logging.getLogger(__name__)


def create_app(
    config: ReqManagerConfig | None = None,
    database: Database | None = None,
    *,
    start_workers: bool = True,
) -> Flask:
    """Create and configure the Flask application.

    Parameters
    ----------
    config:
        Loaded :class:`ReqManagerConfig`.  Falls back to
        :func:`get_config` when ``None``.
    database:
        Initialised :class:`Database` singleton.  When provided, the
        dependency container is wired up.  When ``None`` the app still
        starts (useful for testing) but has nothing to reconcile.
    start_workers:
        Start the reconcile worker pool now.  Gunicorn passes False
        and starts it after forking instead.

    """
    if config is None:
        from reqmanager.config import get_config  # noqa: PLC0415

        config = get_config()

    settings = config.settings

    app = Flask("reqmanager")
    app.config["REQMANAGER_SETTINGS"] = settings
    app.config["REQMANAGER_CONFIG"] = config

    # -- Graceful shutdown coordinator --------------------------------------
    from reqmanager.app.shutdown import ShutdownCoordinator  # noqa: PLC0415

    shutdown_coordinator = ShutdownCoordinator(
        graceful_timeout=settings.server.graceful_timeout,
    )
    app.extensions["shutdown_coordinator"] = shutdown_coordinator
    atexit.register(shutdown_coordinator.initiate)

    # -- Error handlers (RFC 7807) ------------------------------------------
    from reqmanager.app.errors import register_error_handlers  # noqa: PLC0415

    register_error_handlers(app)

    # -- Infrastructure endpoints -------------------------------------------
    _register_health(app)

    # -- Dependency container and workers -----------------------------------
    if database is not None:
        from reqmanager.app.context import Container  # noqa: PLC0415

        container = Container(
            database,
            settings,
            shutdown_coordinator=shutdown_coordinator,
        )
        app.extensions["container"] = container

        from reqmanager.api import register_blueprints  # noqa: PLC0415

        register_blueprints(app)

        shutdown_coordinator.on_shutdown(container.worker.stop)
        atexit.register(container.worker.stop)
        if start_workers:
            container.worker.start()

    # -- Config hot-reload (SIGHUP) -----------------------------------------
    shutdown_coordinator.register_reload_signal()

    @app.before_request
    def _check_config_reload() -> None:
        """Reload safe config sections when SIGHUP is received."""
        sc = app.extensions.get("shutdown_coordinator")
        if sc is None or not sc.reload_requested:
            return
        try:
            apply_reload(app)
        except Exception:
            log.exception("Config hot-reload failed")
        finally:
            sc.consume_reload()

    log.info("Flask application created")
    return app


def apply_reload(app: Flask) -> list[str]:
    """Re-read the config file and apply the sections that are safe to change.

    Only the logging level is applied live; other changes need a
    restart.  Returns the names of the reloaded settings.
    """
    cfg = app.config.get("REQMANAGER_CONFIG")
    if cfg is None:
        return []

    new_settings = cfg.reload_settings()
    current = app.config["REQMANAGER_SETTINGS"]
    reloaded = []

    if new_settings.logging.level != current.logging.level:
        logging.getLogger("reqmanager").setLevel(new_settings.logging.level)
        reloaded.append(f"logging.level={new_settings.logging.level}")

    if new_settings.controller != current.controller:
        log.warning("controller settings changed; restart to apply them")

    if reloaded:
        app.config["REQMANAGER_SETTINGS"] = new_settings
        log.info("Config hot-reloaded sections: %s", ", ".join(reloaded))
    else:
        log.info("Config reload requested but no safe-to-reload changes detected")
    return reloaded


# ---------------------------------------------------------------------------
# Infrastructure endpoints
# ---------------------------------------------------------------------------


def _register_health(app: Flask) -> None:
    """Register ``/livez``, ``/healthz``, and ``/readyz`` probes."""
    from reqmanager import __version__  # noqa: PLC0415

    @app.route("/livez")
    def livez() -> ResponseReturnValue:
        """Return minimal liveness probe."""
        return jsonify({"alive": True, "version": __version__}), 200

    @app.route("/healthz")
    def healthz() -> ResponseReturnValue:
        """Return database, worker and leader state."""
        result: dict = {"status": "ok", "version": __version__}
        checks: dict = {}

        container = app.extensions.get("container")
        if container is not None:
            try:
                container.db.fetch_value("SELECT 1")
                checks["database"] = "connected"
            except Exception:  # noqa: BLE001
                checks["database"] = "disconnected"
                result["status"] = "degraded"

            shutdown_coord = app.extensions.get("shutdown_coordinator")
            if shutdown_coord is not None:
                result["shutting_down"] = shutdown_coord.is_shutting_down
                result["in_flight"] = shutdown_coord.in_flight_count

            worker = container.worker
            alive = worker.is_running
            result["workers"] = {
                "reconcile": "alive" if alive else "dead",
                "leader": worker.is_leader,
                "queue_depth": len(container.queue),
            }
            if not alive:
                result["status"] = "degraded"

        if checks:
            result["checks"] = checks

        code = 200 if result["status"] == "ok" else 503
        return jsonify(result), code

    @app.route("/readyz")
    def readyz() -> ResponseReturnValue:
        """Return readiness probe."""
        container = app.extensions.get("container")
        if container is None:
            return jsonify({"ready": False, "reason": "Container not initialized"}), 503

        shutdown_coord = app.extensions.get("shutdown_coordinator")
        if shutdown_coord is not None and shutdown_coord.is_shutting_down:
            return jsonify({"ready": False, "reason": "Shutting down"}), 503

        try:
            container.db.fetch_value("SELECT 1")
        except Exception:  # noqa: BLE001
            return jsonify({"ready": False, "reason": "Database not connected"}), 503

        return jsonify({"ready": True}), 200
