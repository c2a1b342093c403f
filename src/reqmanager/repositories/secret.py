"""Secret repository.

Values are stored base64-encoded in a JSONB object so that arbitrary
bytes survive the round trip.  An entry that is not valid base64 is
dropped when read, so callers see it as missing.
"""

from __future__ import annotations

import base64
import binascii
import logging

from psycopg.types.json import Jsonb
from pypgkit import BaseRepository

from reqmanager.models.secret import Secret

log = logging.getLogger(__name__)


def _decode_entries(namespace: str, name: str, raw: dict) -> dict[str, bytes]:
    data = {}
    for entry, value in raw.items():
        try:
            data[entry] = base64.b64decode(value, validate=True)
        except (binascii.Error, TypeError):
            log.debug("Dropping undecodable entry %r of secret %s/%s", entry, namespace, name)
    return data


class SecretRepository(BaseRepository[Secret]):
    table_name = "secrets"
    primary_key = "uid"

    def _row_to_entity(self, row: dict) -> Secret:
        data = _decode_entries(row["namespace"], row["name"], row.get("data") or {})
        return Secret(
            uid=row["uid"],
            namespace=row["namespace"],
            name=row["name"],
            data=data,
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _entity_to_row(self, entity: Secret) -> dict:
        data = {k: base64.b64encode(v).decode("ascii") for k, v in entity.data.items()}
        row = {
            "namespace": entity.namespace,
            "name": entity.name,
            "data": Jsonb(data),
        }
        if entity.uid is not None:
            row["uid"] = entity.uid
        return row

    def find_by_key(self, namespace: str, name: str) -> Secret | None:
        return self.find_one_by({"namespace": namespace, "name": name})
