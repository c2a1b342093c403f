"""Event recorder.

Attaches human-readable events to Certificates.  Recording is
fire-and-forget: a failure is logged and never fails the caller.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from uuid import uuid4

import psycopg

from reqmanager.core.types import CERTIFICATE_KIND
from reqmanager.models.event import Event

if TYPE_CHECKING:
    from reqmanager.core.types import EventType
    from reqmanager.models.certificate import Certificate
    from reqmanager.repositories.event import EventRepository

log = logging.getLogger(__name__)


class EventRecorder:
    """Persists events through an :class:`EventRepository`."""

    def __init__(self, events: EventRepository) -> None:
        self._events = events

    def event(
        self,
        certificate: Certificate,
        event_type: EventType,
        reason: str,
        message: str,
    ) -> Event | None:
        """Record an event against *certificate*.

        Returns the event, or ``None`` if it could not be stored.
        """
        event = Event(
            id=uuid4(),
            namespace=certificate.namespace,
            involved_kind=CERTIFICATE_KIND,
            involved_name=certificate.name,
            involved_uid=certificate.uid,
            event_type=event_type,
            reason=reason,
            message=message,
        )
        try:
            self._events.record(event)
        except psycopg.Error:
            log.warning(
                "Failed to record %s event %r for %s/%s",
                event_type,
                reason,
                certificate.namespace,
                certificate.name,
                exc_info=True,
            )
            return None
        log.debug("Recorded event: %s", event)
        return event
