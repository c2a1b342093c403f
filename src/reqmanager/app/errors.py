"""Error taxonomy for the request manager and RFC 7807 rendering.

Only store I/O and cryptographic encoding can fail a reconcile pass.
Both failures are retryable: the dispatch layer re-queues the key with
backoff.  Missing objects, unavailable keys and malformed store keys are
*outcomes*, not errors, and never reach this module.

Usage::

    raise StoreOperationFailed("delete", "default/my-cert-x7k2p", exc)
"""

from __future__ import annotations

import logging
from typing import Any

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

log = logging.getLogger(__name__)

_P = "urn:reqmanager:error:"

STORE_OPERATION_FAILED = _P + "storeOperationFailed"
SYNTHESIS_FAILED = _P + "synthesisFailed"
SERVER_INTERNAL = _P + "serverInternal"

PROBLEM_CONTENT_TYPE = "application/problem+json"


# ---------------------------------------------------------------------------
# Reconcile errors
# ---------------------------------------------------------------------------


class ReconcileError(Exception):
    """Base class for errors that end a reconcile pass.

    Parameters
    ----------
    error_type:
        A URN string identifying the failure class.
    detail:
        Human-readable explanation.
    retryable:
        Whether the dispatch layer should re-queue the key.

    """

    def __init__(self, error_type: str, detail: str, *, retryable: bool = True) -> None:
        self.error_type = error_type
        self.detail = detail
        self.retryable = retryable
        super().__init__(detail)

    @property
    def reason(self) -> str:
        """Short reason, the last segment of :attr:`error_type`."""
        return self.error_type.rsplit(":", 1)[-1]

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.error_type,
            "detail": self.detail,
            "retryable": self.retryable,
        }


class StoreOperationFailed(ReconcileError):
    """A get/list/create/delete against the object store failed."""

    def __init__(self, operation: str, target: str, cause: BaseException | None = None) -> None:
        self.operation = operation
        self.target = target
        detail = f"{operation} {target} failed"
        if cause is not None:
            detail = f"{detail}: {cause}"
        super().__init__(STORE_OPERATION_FAILED, detail)


class SynthesisFailed(ReconcileError):
    """Building or encoding a new CertificateRequest failed."""

    def __init__(self, certificate: str, cause: BaseException | None = None) -> None:
        self.certificate = certificate
        detail = f"failed to build CertificateRequest for {certificate}"
        if cause is not None:
            detail = f"{detail}: {cause}"
        super().__init__(SYNTHESIS_FAILED, detail)


# ---------------------------------------------------------------------------
# Flask error handler registration
# ---------------------------------------------------------------------------


def _problem(error_type: str, detail: str, status: int, title: str | None = None):
    body: dict[str, Any] = {"type": error_type, "detail": detail, "status": status}
    if title is not None:
        body["title"] = title
    resp = jsonify(body)
    resp.status_code = status
    resp.headers["Content-Type"] = PROBLEM_CONTENT_TYPE
    resp.headers["Cache-Control"] = "no-store"
    return resp


def register_error_handlers(app: Flask) -> None:
    """Attach handlers that produce RFC 7807 responses for all errors."""

    @app.errorhandler(ReconcileError)
    def _handle_reconcile_error(exc: ReconcileError):
        return _problem(exc.error_type, exc.detail, 500)

    @app.errorhandler(HTTPException)
    def _handle_http_exception(exc: HTTPException):
        return _problem(
            "about:blank",
            exc.description or "An error occurred",
            exc.code or 500,
            title=exc.name,
        )

    @app.errorhandler(Exception)
    def _handle_unexpected(exc: Exception):
        log.exception("Unhandled exception in HTTP handler")
        return _problem(SERVER_INTERNAL, "Internal server error", 500)
