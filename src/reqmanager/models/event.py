"""Event entity: a human-readable record attached to an object."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from uuid import UUID

    from reqmanager.core.types import EventType

_EPOCH = datetime(1970, 1, 1)


@dataclass(frozen=True)
class Event:
    id: UUID
    namespace: str
    involved_kind: str
    involved_name: str
    involved_uid: UUID | None
    event_type: EventType
    reason: str
    message: str
    created_at: datetime = _EPOCH

    def __str__(self) -> str:
        return f"{self.event_type} {self.reason} {self.message}"
