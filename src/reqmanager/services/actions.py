"""Action sink: the only path through which the reconciler mutates the store.

Wraps the request repository so that every driver failure surfaces as
:class:`~reqmanager.app.errors.StoreOperationFailed`, writes an audit
record for each mutation, and forwards events to the recorder.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import psycopg

from reqmanager.app.errors import StoreOperationFailed
from reqmanager.core.keys import join_key
from reqmanager.logging import audit
from reqmanager.metrics.collector import REQUESTS_CREATED_TOTAL, REQUESTS_DELETED_TOTAL

if TYPE_CHECKING:
    from reqmanager.core.types import EventType, MatchResult
    from reqmanager.metrics.collector import MetricsCollector
    from reqmanager.models.certificate import Certificate
    from reqmanager.models.certificate_request import CertificateRequest
    from reqmanager.models.event import Event
    from reqmanager.repositories.certificate_request import CertificateRequestRepository
    from reqmanager.services.recorder import EventRecorder

log = logging.getLogger(__name__)


class ActionSink:
    """Create/delete CertificateRequests and record events."""

    def __init__(
        self,
        requests: CertificateRequestRepository,
        recorder: EventRecorder,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._requests = requests
        self._recorder = recorder
        self._metrics = metrics

    def create_request(self, request: CertificateRequest) -> CertificateRequest:
        target = join_key(request.namespace, request.name)
        try:
            self._requests.create(request)
        except psycopg.Error as exc:
            raise StoreOperationFailed("create", target, exc) from exc

        owner = request.owner_ref.name if request.owner_ref else ""
        log.info("Created CertificateRequest %s", target)
        audit.request_created(
            request.namespace,
            request.name,
            owner=owner,
            revision=int(request.revision_annotation or 0),
        )
        if self._metrics:
            self._metrics.increment(REQUESTS_CREATED_TOTAL)
        return request

    def delete_request(
        self,
        request: CertificateRequest,
        classification: MatchResult,
    ) -> bool:
        """Delete *request* by name.

        Returns False (and does nothing else) when it was already gone.
        """
        target = join_key(request.namespace, request.name)
        try:
            existed = self._requests.delete_by_key(request.namespace, request.name)
        except psycopg.Error as exc:
            raise StoreOperationFailed("delete", target, exc) from exc

        if not existed:
            log.debug("CertificateRequest %s already deleted", target)
            return False

        log.info("Deleted CertificateRequest %s (%s)", target, classification)
        audit.request_deleted(
            request.namespace,
            request.name,
            classification.value,
        )
        if self._metrics:
            self._metrics.increment(
                REQUESTS_DELETED_TOTAL,
                labels={"classification": classification.value},
            )
        return True

    def record_event(
        self,
        certificate: Certificate,
        event_type: EventType,
        reason: str,
        message: str,
    ) -> Event | None:
        return self._recorder.event(certificate, event_type, reason, message)
