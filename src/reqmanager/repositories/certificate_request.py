"""CertificateRequest repository."""

from __future__ import annotations

from typing import TYPE_CHECKING

from psycopg.types.json import Jsonb
from pypgkit import BaseRepository, Database

from reqmanager.models.certificate_request import (
    CertificateRequest,
    CertificateRequestSpec,
    OwnerReference,
)
from reqmanager.repositories.certificate import issuer_ref_from_json, issuer_ref_to_json

if TYPE_CHECKING:
    from uuid import UUID


class CertificateRequestRepository(BaseRepository[CertificateRequest]):
    table_name = "certificate_requests"
    primary_key = "uid"

    def _row_to_entity(self, row: dict) -> CertificateRequest:
        owner_ref = None
        if row.get("owner_uid") is not None:
            owner_ref = OwnerReference(
                uid=row["owner_uid"],
                name=row.get("owner_name") or "",
                kind=row.get("owner_kind") or "Certificate",
                controller=bool(row.get("owner_controller", True)),
            )
        spec = CertificateRequestSpec(
            csr_pem=bytes(row["csr"]),
            issuer_ref=issuer_ref_from_json(row["issuer_ref"]),
            duration_seconds=row.get("duration_seconds"),
            is_ca=bool(row.get("is_ca", False)),
            usages=tuple(row.get("usages") or ()),
        )
        return CertificateRequest(
            uid=row["uid"],
            namespace=row["namespace"],
            name=row["name"],
            spec=spec,
            owner_ref=owner_ref,
            annotations=dict(row.get("annotations") or {}),
            labels=dict(row.get("labels") or {}),
            created_at=row["created_at"],
        )

    def _entity_to_row(self, entity: CertificateRequest) -> dict:
        ref = entity.owner_ref
        return {
            "uid": entity.uid,
            "namespace": entity.namespace,
            "name": entity.name,
            "owner_uid": ref.uid if ref else None,
            "owner_name": ref.name if ref else None,
            "owner_kind": ref.kind if ref else None,
            "owner_controller": ref.controller if ref else False,
            "annotations": Jsonb(entity.annotations),
            "labels": Jsonb(entity.labels),
            "csr": entity.spec.csr_pem,
            "issuer_ref": Jsonb(issuer_ref_to_json(entity.spec.issuer_ref)),
            "duration_seconds": entity.spec.duration_seconds,
            "is_ca": entity.spec.is_ca,
            "usages": Jsonb(list(entity.spec.usages)),
        }

    def find_owned_by(self, namespace: str, owner_uid: UUID) -> list[CertificateRequest]:
        """Requests in *namespace* whose controlling owner is *owner_uid*."""
        requests = self.find_by({"namespace": namespace, "owner_uid": owner_uid})
        return [r for r in requests if r.is_controlled_by(owner_uid)]

    def find_by_key(self, namespace: str, name: str) -> CertificateRequest | None:
        return self.find_one_by({"namespace": namespace, "name": name})

    def delete_by_key(self, namespace: str, name: str) -> bool:
        """Delete a request by name.

        Returns False when it was already gone.
        """
        db = Database.get_instance()
        deleted = db.execute(
            "DELETE FROM certificate_requests WHERE namespace = %s AND name = %s",
            (namespace, name),
        )
        return bool(deleted)
