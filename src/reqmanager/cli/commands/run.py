"""Run subcommand: start the controller and its HTTP surface."""

from __future__ import annotations

import logging
import sys

log = logging.getLogger(__name__)


def run_controller(config, args) -> None:
    """Start the reconcile workers behind gunicorn or the dev server."""
    from reqmanager.app import create_app
    from reqmanager.db import init_database

    try:
        db = init_database(config.settings.database)
    except Exception as exc:
        if args.debug:
            raise
        sys.stderr.write(f"reqmanager: error: database initialisation failed: {exc}\n")
        sys.exit(1)

    if args.dev:
        app = create_app(config=config, database=db)
        app.extensions["shutdown_coordinator"].register_signals()
        log.info("Starting development server (not for production)")
        app.run(
            host=config.settings.server.bind,
            port=config.settings.server.port,
            debug=True,
            use_reloader=False,
        )
        return

    from reqmanager.server.gunicorn_app import run_gunicorn

    app = create_app(config=config, database=db, start_workers=False)
    container = app.extensions["container"]
    try:
        run_gunicorn(app, config.settings.server, on_worker_start=container.worker.start)
    except RuntimeError as exc:
        sys.stderr.write(f"reqmanager: error: {exc}\n")
        sys.exit(1)
