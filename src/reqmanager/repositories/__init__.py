"""Repository classes for the request manager's object store.

Each repository extends :class:`pypgkit.BaseRepository` with the
lookups the reconcile loop needs.
"""

from reqmanager.repositories.certificate import CertificateRepository
from reqmanager.repositories.certificate_request import CertificateRequestRepository
from reqmanager.repositories.event import EventRepository
from reqmanager.repositories.secret import SecretRepository

__all__ = [
    "CertificateRepository",
    "CertificateRequestRepository",
    "EventRepository",
    "SecretRepository",
]
