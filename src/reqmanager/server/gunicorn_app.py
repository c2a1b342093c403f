"""Serve the health and metrics app under gunicorn, configured from ServerSettings.

Reconcile workers are threads, and threads do not survive ``fork``.
They are therefore started from gunicorn's ``post_worker_init`` hook in
every worker process, never in the master.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

    from flask import Flask

    from reqmanager.config.settings import ServerSettings

log = logging.getLogger(__name__)


def gunicorn_options(
    settings: ServerSettings,
    on_worker_start: Callable[[], None] | None = None,
) -> dict[str, Any]:
    """Map *settings* to gunicorn setting names."""
    options: dict[str, Any] = {
        "bind": f"{settings.bind}:{settings.port}",
        "workers": settings.workers,
        "worker_class": "sync",
        "timeout": settings.timeout,
        "graceful_timeout": settings.graceful_timeout,
        "keepalive": settings.keepalive,
        "accesslog": None,
    }
    if on_worker_start is not None:
        options["post_worker_init"] = lambda _worker: on_worker_start()
    return options


def run_gunicorn(
    app: Flask,
    settings: ServerSettings,
    on_worker_start: Callable[[], None] | None = None,
) -> None:
    """Block serving *app* until gunicorn exits.

    Raises :class:`RuntimeError` when gunicorn is unavailable (Windows);
    use ``--dev`` there.
    """
    try:
        from gunicorn.app.base import BaseApplication
    except ImportError as exc:
        msg = "gunicorn is not installed (it only runs on Unix); use --dev instead"
        raise RuntimeError(msg) from exc

    options = gunicorn_options(settings, on_worker_start)

    class _Server(BaseApplication):
        def load_config(self) -> None:
            for key, value in options.items():
                self.cfg.set(key, value)

        def load(self) -> Flask:
            return app

    log.info("Starting gunicorn on %s (%d workers)", options["bind"], settings.workers)
    _Server().run()
