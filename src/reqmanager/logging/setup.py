"""Structured logging for the request manager.

Every record emitted while a reconcile pass runs carries the
Certificate key (``reconcile_key``) and the worker thread number
(``worker_id``).  Both live in context variables set by
:func:`reconcile_context`, so they follow the pass without being
threaded through every call.

Output is JSON lines by default; ``logging.format: text`` switches the
console to a human-readable layout.  The ``reqmanager.audit`` logger can
additionally write to a rotating file, always as JSON.
"""

from __future__ import annotations

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from reqmanager.config.settings import AuditLogSettings, LoggingSettings

_reconcile_key: ContextVar[str | None] = ContextVar("reconcile_key", default=None)
_worker_id: ContextVar[int | None] = ContextVar("worker_id", default=None)

_CONTEXT_FIELDS = ("reconcile_key", "worker_id")

# Whatever a bare LogRecord carries is bookkeeping; the rest is caller extras.
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__,
) | {"message", "asctime", *_CONTEXT_FIELDS}

_QUIET_LOGGERS = ("werkzeug", "gunicorn", "gunicorn.access", "gunicorn.error", "psycopg")


@contextmanager
def reconcile_context(key: str, worker_id: int | None = None) -> Iterator[None]:
    """Tag every record logged inside the block with *key* and *worker_id*."""
    tokens = (_reconcile_key.set(key), _worker_id.set(worker_id))
    try:
        yield
    finally:
        _worker_id.reset(tokens[1])
        _reconcile_key.reset(tokens[0])


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, extras included."""

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()
        data: dict = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.message,
        }
        for field in _CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                data[field] = value
        data.update(
            (k, v)
            for k, v in record.__dict__.items()
            if k not in _RECORD_ATTRS and not k.startswith("_") and k not in data
        )
        if record.exc_info and record.exc_info[0] is not None:
            data["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            data["stack_info"] = self.formatStack(record.stack_info)
        return json.dumps(data, default=str)


class TextFormatter(logging.Formatter):
    """Console layout for development."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)-8s [%(reconcile_key)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


class ReconcileContextFilter(logging.Filter):
    """Copy the active reconcile key and worker id onto each record.

    Values passed explicitly through ``extra=`` are kept.  Outside a
    pass the key is ``"-"``.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if not hasattr(record, "reconcile_key"):
            record.reconcile_key = _reconcile_key.get() or "-"  # type: ignore[attr-defined]
        if not hasattr(record, "worker_id"):
            record.worker_id = _worker_id.get()  # type: ignore[attr-defined]
        return True


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def configure_logging(settings: LoggingSettings) -> logging.Logger:
    """Install handlers on the ``reqmanager`` logger from *settings*.

    Bootstrap handlers are replaced.  Returns the ``reqmanager`` logger.
    """
    root = logging.getLogger("reqmanager")
    root.setLevel(getattr(logging, settings.level.upper(), logging.INFO))
    root.handlers.clear()
    root.propagate = False

    context = ReconcileContextFilter()
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(StructuredFormatter() if settings.format == "json" else TextFormatter())
    console.addFilter(context)
    root.addHandler(console)

    if settings.audit.enabled:
        _configure_audit(settings.audit, context)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return root


def _configure_audit(settings: AuditLogSettings, context: logging.Filter) -> None:
    audit = logging.getLogger("reqmanager.audit")
    audit.setLevel(logging.INFO)
    audit.handlers.clear()
    if not settings.file:
        return
    try:
        handler = RotatingFileHandler(
            settings.file,
            maxBytes=settings.max_file_size_bytes,
            backupCount=settings.backup_count,
        )
    except OSError as exc:
        logging.getLogger("reqmanager").warning(
            "Could not open audit log file %s: %s", settings.file, exc
        )
        return
    handler.setFormatter(StructuredFormatter())
    handler.addFilter(context)
    audit.addHandler(handler)
