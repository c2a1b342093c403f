"""Event repository."""

from __future__ import annotations

from pypgkit import BaseRepository, Database

from reqmanager.core.types import EventType
from reqmanager.models.event import Event


class EventRepository(BaseRepository[Event]):
    table_name = "events"
    primary_key = "id"

    def _row_to_entity(self, row: dict) -> Event:
        return Event(
            id=row["id"],
            namespace=row["namespace"],
            involved_kind=row["involved_kind"],
            involved_name=row["involved_name"],
            involved_uid=row.get("involved_uid"),
            event_type=EventType(row["event_type"]),
            reason=row["reason"],
            message=row["message"],
            created_at=row["created_at"],
        )

    def _entity_to_row(self, entity: Event) -> dict:
        return {
            "id": entity.id,
            "namespace": entity.namespace,
            "involved_kind": entity.involved_kind,
            "involved_name": entity.involved_name,
            "involved_uid": entity.involved_uid,
            "event_type": entity.event_type.value,
            "reason": entity.reason,
            "message": entity.message,
        }

    def record(self, event: Event) -> Event:
        return self.create(event)

    def find_for(
        self,
        involved_kind: str,
        namespace: str,
        name: str,
        limit: int = 50,
    ) -> list[Event]:
        """Most recent events for one object, newest first."""
        db = Database.get_instance()
        rows = db.fetch_all(
            "SELECT * FROM events "
            "WHERE involved_kind = %s AND namespace = %s AND involved_name = %s "
            "ORDER BY created_at DESC LIMIT %s",
            (involved_kind, namespace, name, limit),
            as_dict=True,
        )
        return [self._row_to_entity(r) for r in rows]
