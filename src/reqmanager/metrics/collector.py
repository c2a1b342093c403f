"""In-process metrics collector.

Counters and gauges are kept in memory and exported in Prometheus
text format by the ``/metrics`` endpoint.
"""

from __future__ import annotations

import threading
import time

RECONCILE_TOTAL = "reqmanager_reconcile_total"
RECONCILE_ERRORS_TOTAL = "reqmanager_reconcile_errors_total"
REQUESTS_CREATED_TOTAL = "reqmanager_requests_created_total"
REQUESTS_DELETED_TOTAL = "reqmanager_requests_deleted_total"
WORKER_RESYNCS_TOTAL = "reqmanager_worker_resyncs_total"
QUEUE_DEPTH = "reqmanager_queue_depth"
LEADER = "reqmanager_leader"

_HELP = {
    RECONCILE_TOTAL: "Reconcile passes by outcome",
    RECONCILE_ERRORS_TOTAL: "Reconcile passes that failed, by reason",
    REQUESTS_CREATED_TOTAL: "CertificateRequests created",
    REQUESTS_DELETED_TOTAL: "CertificateRequests deleted, by classification",
    WORKER_RESYNCS_TOTAL: "Periodic resyncs of issuing Certificates",
    QUEUE_DEPTH: "Keys waiting in the work queue",
    LEADER: "1 while this instance holds the leader lock",
}


class MetricsCollector:
    """Thread-safe in-process metrics collector."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, int] = {}
        self._gauges: dict[str, float] = {}
        self._start_time = time.time()

    def increment(self, name: str, amount: int = 1, labels: dict | None = None) -> None:
        """Increment a counter."""
        key = self._make_key(name, labels)
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + amount

    def set_gauge(self, name: str, value: float, labels: dict | None = None) -> None:
        key = self._make_key(name, labels)
        with self._lock:
            self._gauges[key] = value

    def get(self, name: str, labels: dict | None = None) -> float:
        """Get the current value of a counter or gauge."""
        key = self._make_key(name, labels)
        with self._lock:
            if key in self._gauges:
                return self._gauges[key]
            return self._counters.get(key, 0)

    def export(self) -> str:
        """Export all metrics in Prometheus text format."""
        lines = [
            "# HELP reqmanager_uptime_seconds Time since process start",
            "# TYPE reqmanager_uptime_seconds gauge",
            f"reqmanager_uptime_seconds {time.time() - self._start_time:.1f}",
            "",
        ]

        with self._lock:
            for kind, values in (("counter", self._counters), ("gauge", self._gauges)):
                grouped: dict[str, list[tuple[str, float]]] = {}
                for key, value in sorted(values.items()):
                    name = key.split("{")[0]
                    grouped.setdefault(name, []).append((key, value))

                for name, entries in sorted(grouped.items()):
                    if name in _HELP:
                        lines.append(f"# HELP {name} {_HELP[name]}")
                    lines.append(f"# TYPE {name} {kind}")
                    lines.extend(f"{key} {value}" for key, value in entries)
                    lines.append("")

        return "\n".join(lines) + "\n"

    @staticmethod
    def _make_key(name: str, labels: dict | None) -> str:
        if not labels:
            return name
        label_str = ",".join(f'{k}="{v}"' for k, v in sorted(labels.items()))
        return f"{name}{{{label_str}}}"
