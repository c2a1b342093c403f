"""HTTP blueprints exposed next to the reconcile loop."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from flask import Flask


def register_blueprints(app: Flask) -> None:
    """Register the metrics blueprint when metrics are enabled."""
    settings = app.config["REQMANAGER_SETTINGS"]
    if settings.metrics.enabled:
        from reqmanager.api.metrics import metrics_bp  # noqa: PLC0415

        app.register_blueprint(metrics_bp, url_prefix=settings.metrics.path)
