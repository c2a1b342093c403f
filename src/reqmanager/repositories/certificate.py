"""Certificate repository."""

from __future__ import annotations

from typing import TYPE_CHECKING

from psycopg.types.json import Jsonb
from pypgkit import BaseRepository, Database

from reqmanager.core.types import ConditionStatus, ConditionType, KeyAlgorithm
from reqmanager.models.certificate import (
    Certificate,
    CertificateCondition,
    CertificateSpec,
    CertificateStatus,
    IssuerRef,
)

if TYPE_CHECKING:
    from collections.abc import Sequence


def issuer_ref_to_json(ref: IssuerRef) -> dict:
    return {"name": ref.name, "kind": ref.kind, "group": ref.group}


def issuer_ref_from_json(data: dict) -> IssuerRef:
    return IssuerRef(
        name=data["name"],
        kind=data.get("kind") or "Issuer",
        group=data.get("group") or "cert-manager.io",
    )


def spec_to_json(spec: CertificateSpec) -> dict:
    """Serialise a spec using the field names of the Certificate resource."""
    return {
        "secretName": spec.secret_name,
        "issuerRef": issuer_ref_to_json(spec.issuer_ref),
        "commonName": spec.common_name,
        "dnsNames": list(spec.dns_names),
        "ipAddresses": list(spec.ip_addresses),
        "uris": list(spec.uris),
        "emailAddresses": list(spec.email_addresses),
        "subject": {"organizations": list(spec.organizations)},
        "duration": spec.duration_seconds,
        "isCA": spec.is_ca,
        "usages": list(spec.usages),
        "privateKey": {
            "algorithm": spec.key_algorithm.value,
            "size": spec.key_size,
        },
    }


def spec_from_json(data: dict) -> CertificateSpec:
    subject = data.get("subject") or {}
    private_key = data.get("privateKey") or {}
    return CertificateSpec(
        secret_name=data["secretName"],
        issuer_ref=issuer_ref_from_json(data["issuerRef"]),
        common_name=data.get("commonName"),
        dns_names=tuple(data.get("dnsNames") or ()),
        ip_addresses=tuple(data.get("ipAddresses") or ()),
        uris=tuple(data.get("uris") or ()),
        email_addresses=tuple(data.get("emailAddresses") or ()),
        organizations=tuple(subject.get("organizations") or ()),
        duration_seconds=data.get("duration"),
        is_ca=bool(data.get("isCA", False)),
        usages=tuple(data.get("usages") or ()),
        key_algorithm=KeyAlgorithm(str(private_key.get("algorithm") or KeyAlgorithm.RSA).lower()),
        key_size=private_key.get("size"),
    )


def _condition_from_json(data: dict) -> CertificateCondition:
    return CertificateCondition(
        type=data["type"],
        status=data["status"],
        reason=data.get("reason"),
        message=data.get("message"),
    )


def _condition_to_json(condition: CertificateCondition) -> dict:
    out = {"type": condition.type, "status": condition.status}
    if condition.reason is not None:
        out["reason"] = condition.reason
    if condition.message is not None:
        out["message"] = condition.message
    return out


class CertificateRepository(BaseRepository[Certificate]):
    table_name = "certificates"
    primary_key = "uid"

    def _row_to_entity(self, row: dict) -> Certificate:
        status = CertificateStatus(
            revision=row.get("revision"),
            next_private_key_secret_name=row.get("next_private_key_secret_name"),
            conditions=tuple(_condition_from_json(c) for c in row.get("conditions") or ()),
        )
        return Certificate(
            uid=row["uid"],
            namespace=row["namespace"],
            name=row["name"],
            spec=spec_from_json(row["spec"]),
            status=status,
            labels=dict(row.get("labels") or {}),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _entity_to_row(self, entity: Certificate) -> dict:
        return {
            "uid": entity.uid,
            "namespace": entity.namespace,
            "name": entity.name,
            "labels": Jsonb(entity.labels),
            "spec": Jsonb(spec_to_json(entity.spec)),
            "revision": entity.status.revision,
            "next_private_key_secret_name": entity.status.next_private_key_secret_name,
            "conditions": Jsonb([_condition_to_json(c) for c in entity.status.conditions]),
        }

    def find_by_key(self, namespace: str, name: str) -> Certificate | None:
        """Find a Certificate by its store key, or ``None`` if absent."""
        return self.find_one_by({"namespace": namespace, "name": name})

    def find_issuing(self, namespaces: Sequence[str] = ()) -> list[Certificate]:
        """Find Certificates whose ``Issuing`` condition is ``True``.

        Parameters
        ----------
        namespaces:
            Restrict the search to these namespaces.  Empty means all.

        """
        db = Database.get_instance()
        issuing = Jsonb([{"type": ConditionType.ISSUING.value, "status": ConditionStatus.TRUE.value}])
        if namespaces:
            rows = db.fetch_all(
                "SELECT * FROM certificates "
                "WHERE conditions @> %s AND namespace = ANY(%s) "
                "ORDER BY namespace, name",
                (issuing, list(namespaces)),
                as_dict=True,
            )
        else:
            rows = db.fetch_all(
                "SELECT * FROM certificates WHERE conditions @> %s ORDER BY namespace, name",
                (issuing,),
                as_dict=True,
            )
        return [self._row_to_entity(r) for r in rows]
