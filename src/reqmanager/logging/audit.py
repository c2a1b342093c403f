"""Audit trail for store mutations.

Every CertificateRequest the request manager creates or deletes is
reported to the ``reqmanager.audit`` logger with a stable ``event_id``
so that operators can filter and alert on it.  PEM bodies are never
written out.
"""

from __future__ import annotations

import logging
import re
from typing import Any

audit_log = logging.getLogger("reqmanager.audit")

_PEM_BODY_RE = re.compile(
    r"(-----BEGIN [A-Z0-9 ]+-----)"
    r"([\s\S]*?)"
    r"(-----END [A-Z0-9 ]+-----)",
)


def sanitize_pem(pem: str) -> str:
    """Replace the base64 body of PEM blocks with ``[REDACTED]``."""

    def _redact(m) -> str:
        return f"{m.group(1)}\n[REDACTED]\n{m.group(3)}"

    return _PEM_BODY_RE.sub(_redact, pem)


def sanitize_for_logs(data: Any) -> Any:  # noqa: ANN401
    """Recursively redact PEM material in *data*."""
    if isinstance(data, dict):
        return {k: sanitize_for_logs(v) for k, v in data.items()}
    if isinstance(data, (list, tuple)):
        return type(data)(sanitize_for_logs(item) for item in data)
    if isinstance(data, bytes):
        data = data.decode("ascii", errors="replace")
    if isinstance(data, str) and "-----BEGIN " in data:
        return sanitize_pem(data)
    return data


def _emit(event_id: str, message: str, *args: Any, **extra: Any) -> None:  # noqa: ANN401
    data: dict[str, object] = {"event_id": event_id}
    data.update(sanitize_for_logs(extra))
    audit_log.info(message, *args, extra=data)


def request_created(namespace: str, name: str, owner: str, revision: int) -> None:
    _emit(
        "reqmanager.audit.request_created",
        "CertificateRequest created: %s/%s",
        namespace,
        name,
        owner=owner,
        revision=revision,
    )


def request_deleted(namespace: str, name: str, classification: str) -> None:
    _emit(
        "reqmanager.audit.request_deleted",
        "CertificateRequest deleted: %s/%s (%s)",
        namespace,
        name,
        classification,
        classification=classification,
    )
