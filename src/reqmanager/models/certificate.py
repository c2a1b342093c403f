"""Certificate entity: the declared, long-lived desired state."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from reqmanager.core.types import ConditionStatus, ConditionType, KeyAlgorithm

if TYPE_CHECKING:
    from uuid import UUID

_EPOCH = datetime(1970, 1, 1)


@dataclass(frozen=True)
class IssuerRef:
    """Reference to the issuer that should sign requests."""

    name: str
    kind: str = "Issuer"
    group: str = "cert-manager.io"


@dataclass(frozen=True)
class CertificateCondition:
    type: str
    status: str
    reason: str | None = None
    message: str | None = None
    last_transition_time: datetime | None = None


@dataclass(frozen=True)
class CertificateSpec:
    """Inputs to CSR synthesis for one revision."""

    secret_name: str
    issuer_ref: IssuerRef
    common_name: str | None = None
    dns_names: tuple[str, ...] = ()
    ip_addresses: tuple[str, ...] = ()
    uris: tuple[str, ...] = ()
    email_addresses: tuple[str, ...] = ()
    organizations: tuple[str, ...] = ()
    duration_seconds: int | None = None
    is_ca: bool = False
    usages: tuple[str, ...] = ()
    key_algorithm: KeyAlgorithm = KeyAlgorithm.RSA
    key_size: int | None = None


@dataclass(frozen=True)
class CertificateStatus:
    """Status fields owned by collaborators outside the request manager."""

    revision: int | None = None
    next_private_key_secret_name: str | None = None
    conditions: tuple[CertificateCondition, ...] = ()


@dataclass(frozen=True)
class Certificate:
    uid: UUID
    namespace: str
    name: str
    spec: CertificateSpec
    status: CertificateStatus = field(default_factory=CertificateStatus)
    labels: dict[str, str] = field(default_factory=dict)
    created_at: datetime = _EPOCH
    updated_at: datetime = _EPOCH

    def get_condition(self, condition_type: str) -> CertificateCondition | None:
        for condition in self.status.conditions:
            if condition.type == condition_type:
                return condition
        return None

    def has_condition(self, condition_type: str, status: str) -> bool:
        condition = self.get_condition(condition_type)
        return condition is not None and condition.status == status

    @property
    def is_issuing(self) -> bool:
        """True while the ``Issuing`` condition is ``True``."""
        return self.has_condition(ConditionType.ISSUING, ConditionStatus.TRUE)
