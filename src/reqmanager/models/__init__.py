"""Entity models for the reqmanager store.

All models are frozen dataclasses.  Use :func:`dataclasses.replace`
for modifications (copy-on-write).
"""

from reqmanager.models.certificate import (
    Certificate,
    CertificateCondition,
    CertificateSpec,
    CertificateStatus,
    IssuerRef,
)
from reqmanager.models.certificate_request import (
    CertificateRequest,
    CertificateRequestSpec,
    OwnerReference,
)
from reqmanager.models.event import Event
from reqmanager.models.secret import Secret

__all__ = [
    "Certificate",
    "CertificateCondition",
    "CertificateRequest",
    "CertificateRequestSpec",
    "CertificateSpec",
    "CertificateStatus",
    "Event",
    "IssuerRef",
    "OwnerReference",
    "Secret",
]
