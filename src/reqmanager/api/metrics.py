"""Prometheus-compatible metrics endpoint.

``GET /metrics`` returns the reconcile counters in text format.
"""

from __future__ import annotations

from flask import Blueprint, make_response

from reqmanager.app.context import get_container
from reqmanager.metrics.collector import QUEUE_DEPTH

metrics_bp = Blueprint("metrics", __name__)


@metrics_bp.route("", methods=["GET"])
def get_metrics():
    """Return metrics in Prometheus text exposition format."""
    container = get_container()
    collector = container.metrics_collector
    if collector is None:
        return "# No metrics available\n", 200, {"Content-Type": "text/plain"}

    collector.set_gauge(QUEUE_DEPTH, len(container.queue))
    response = make_response(collector.export())
    response.headers["Content-Type"] = "text/plain; version=0.0.4; charset=utf-8"
    return response
