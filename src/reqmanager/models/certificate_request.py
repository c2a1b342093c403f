"""CertificateRequest entity: one signing attempt for one revision."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from reqmanager.core.types import (
    CERTIFICATE_KIND,
    PRIVATE_KEY_ANNOTATION,
    REVISION_ANNOTATION,
)

if TYPE_CHECKING:
    from uuid import UUID

    from reqmanager.models.certificate import IssuerRef

_EPOCH = datetime(1970, 1, 1)


@dataclass(frozen=True)
class OwnerReference:
    """Foreign key from a request to the object that owns it."""

    uid: UUID
    name: str
    kind: str = CERTIFICATE_KIND
    controller: bool = True


@dataclass(frozen=True)
class CertificateRequestSpec:
    csr_pem: bytes
    issuer_ref: IssuerRef
    duration_seconds: int | None = None
    is_ca: bool = False
    usages: tuple[str, ...] = ()


@dataclass(frozen=True)
class CertificateRequest:
    uid: UUID
    namespace: str
    name: str
    spec: CertificateRequestSpec
    owner_ref: OwnerReference | None = None
    annotations: dict[str, str] = field(default_factory=dict)
    labels: dict[str, str] = field(default_factory=dict)
    created_at: datetime = _EPOCH

    @property
    def revision_annotation(self) -> str | None:
        return self.annotations.get(REVISION_ANNOTATION)

    @property
    def private_key_secret_name(self) -> str | None:
        return self.annotations.get(PRIVATE_KEY_ANNOTATION)

    def is_controlled_by(self, owner_uid: UUID) -> bool:
        ref = self.owner_ref
        return ref is not None and ref.controller and ref.uid == owner_uid
