"""Request classification.

:func:`classify_request` compares one CertificateRequest with the
target the Certificate currently wants and returns exactly one
:class:`~reqmanager.core.types.MatchResult`.  It is pure and total:
whatever the request holds, a classification comes back and nothing is
raised.

Checks run in a fixed order and the first failure wins::

    revision annotation unparseable  -> MISSING_REVISION  (delete)
    revision != target               -> WRONG_REVISION    (ignore)
    private key annotation differs   -> WRONG_KEY         (delete)
    CSR does not decode              -> MALFORMED_CSR     (delete)
    CSR public key differs           -> KEY_MISMATCH      (delete)
    CSR / request differs from spec  -> SPEC_MISMATCH     (delete)
    otherwise                        -> VALID
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from cryptography.exceptions import UnsupportedAlgorithm

from reqmanager.core.revision import parse_revision
from reqmanager.core.types import MatchResult
from reqmanager.pki.csr import csr_spec_violations, decode_csr
from reqmanager.pki.keys import public_keys_equal

if TYPE_CHECKING:
    from collections.abc import Iterable

    from cryptography.hazmat.primitives.asymmetric.types import PublicKeyTypes

    from reqmanager.models.certificate import CertificateSpec
    from reqmanager.models.certificate_request import CertificateRequest

log = logging.getLogger(__name__)

_CSR_ERRORS = (ValueError, TypeError, UnsupportedAlgorithm)


@dataclass(frozen=True)
class MatchTarget:
    """What a request must look like to satisfy the current issuance."""

    revision: int
    secret_name: str
    spec: CertificateSpec
    public_key: PublicKeyTypes


@dataclass(frozen=True)
class Classification:
    """A request together with its classification and diagnostics."""

    request: CertificateRequest
    result: MatchResult
    violations: tuple[str, ...] = field(default_factory=tuple)
    detail: str | None = None


def classify_request(request: CertificateRequest, target: MatchTarget) -> MatchResult:
    """Classify *request* against *target*."""
    return explain_request(request, target).result


def explain_request(request: CertificateRequest, target: MatchTarget) -> Classification:
    """Like :func:`classify_request` but keeps the reasons for reporting."""
    revision = parse_revision(request.revision_annotation)
    if revision is None:
        return Classification(
            request,
            MatchResult.MISSING_REVISION,
            detail=f"revision annotation is {request.revision_annotation!r}",
        )
    if revision != target.revision:
        return Classification(
            request,
            MatchResult.WRONG_REVISION,
            detail=f"revision {revision} is not the target revision {target.revision}",
        )

    if request.private_key_secret_name != target.secret_name:
        return Classification(
            request,
            MatchResult.WRONG_KEY,
            detail=(
                f"generated against secret {request.private_key_secret_name!r}, "
                f"expected {target.secret_name!r}"
            ),
        )

    try:
        csr = decode_csr(request.spec.csr_pem)
    except _CSR_ERRORS as exc:
        return Classification(request, MatchResult.MALFORMED_CSR, detail=str(exc))

    try:
        csr_public_key = csr.public_key()
    except _CSR_ERRORS as exc:
        return Classification(request, MatchResult.MALFORMED_CSR, detail=str(exc))
    if not public_keys_equal(csr_public_key, target.public_key):
        return Classification(
            request,
            MatchResult.KEY_MISMATCH,
            detail="CSR public key does not match the next private key",
        )

    try:
        violations = csr_spec_violations(csr, request, target.spec)
    except _CSR_ERRORS as exc:
        return Classification(request, MatchResult.MALFORMED_CSR, detail=str(exc))
    if violations:
        return Classification(
            request,
            MatchResult.SPEC_MISMATCH,
            violations=tuple(violations),
            detail="request does not match certificate spec",
        )

    return Classification(request, MatchResult.VALID)


def classify_requests(
    requests: Iterable[CertificateRequest],
    target: MatchTarget,
) -> list[Classification]:
    """Classify every request, logging each decision at debug level."""
    results = []
    for request in requests:
        classification = explain_request(request, target)
        log.debug(
            "CertificateRequest %s/%s classified as %s",
            request.namespace,
            request.name,
            classification.result,
            extra={
                "request_name": request.name,
                "classification": classification.result.value,
                "violations": list(classification.violations),
            },
        )
        results.append(classification)
    return results
