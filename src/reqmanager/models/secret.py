"""Secret entity (read-only to the request manager)."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from uuid import UUID

_EPOCH = datetime(1970, 1, 1)


@dataclass(frozen=True)
class Secret:
    namespace: str
    name: str
    data: dict[str, bytes] = field(default_factory=dict)
    uid: UUID | None = None
    created_at: datetime = _EPOCH
    updated_at: datetime = _EPOCH
