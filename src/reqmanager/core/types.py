"""Enumerated types and wire constants for the reqmanager store.

All enums inherit from ``StrEnum`` so their ``.value`` is a plain
string that psycopg serialises as TEXT and JSON round-trips naturally.
"""

from __future__ import annotations

from enum import StrEnum

# ---------------------------------------------------------------------------
# CertificateRequest annotations (wire contract shared with collaborators)
# ---------------------------------------------------------------------------

PRIVATE_KEY_ANNOTATION = "private-key-secret-name"
REVISION_ANNOTATION = "revision"

# Well-known secret entry holding the PEM private key.
TLS_PRIVATE_KEY_KEY = "tls.key"

CERTIFICATE_KIND = "Certificate"
CERTIFICATE_REQUEST_KIND = "CertificateRequest"
API_GROUP = "cert-manager.io"


# ---------------------------------------------------------------------------
# Conditions
# ---------------------------------------------------------------------------


class ConditionType(StrEnum):
    READY = "Ready"
    ISSUING = "Issuing"


class ConditionStatus(StrEnum):
    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------


class KeyAlgorithm(StrEnum):
    RSA = "rsa"
    ECDSA = "ecdsa"
    ED25519 = "ed25519"


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


class EventType(StrEnum):
    NORMAL = "Normal"
    WARNING = "Warning"


# ---------------------------------------------------------------------------
# Request classification
# ---------------------------------------------------------------------------


class MatchResult(StrEnum):
    """Outcome of comparing one CertificateRequest against the target.

    ``WRONG_REVISION`` requests belong to another issuance cycle and are
    left alone.  ``VALID`` requests satisfy the target.  Every other
    member marks a request that must be deleted.
    """

    MISSING_REVISION = "MissingRevision"
    WRONG_REVISION = "WrongRevision"
    WRONG_KEY = "WrongKey"
    MALFORMED_CSR = "MalformedCSR"
    KEY_MISMATCH = "KeyMismatch"
    SPEC_MISMATCH = "SpecMismatch"
    VALID = "Valid"

    @property
    def is_invalid(self) -> bool:
        return self not in (MatchResult.WRONG_REVISION, MatchResult.VALID)


# ---------------------------------------------------------------------------
# Reconcile outcomes
# ---------------------------------------------------------------------------


class ReconcileOutcome(StrEnum):
    SKIPPED = "skipped"
    CONVERGED = "converged"
    MUTATED = "mutated"
