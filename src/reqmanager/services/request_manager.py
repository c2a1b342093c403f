"""Request manager: one reconcile pass for one Certificate.

``process_item`` is stateless and safe to abandon at any point.  It
reads the Certificate, its next private key and the requests it owns,
deletes the requests that can never satisfy the current issuance, and
creates one new request when no valid one remains::

    key -> Certificate -> Issuing? -> key material -> target revision
        -> classify owned requests -> delete invalid -> create if none valid
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import psycopg

from reqmanager.app.errors import StoreOperationFailed
from reqmanager.core.keys import MalformedKeyError, join_key, split_key
from reqmanager.core.revision import next_revision
from reqmanager.core.types import MatchResult, ReconcileOutcome
from reqmanager.services.request_matcher import MatchTarget, classify_requests

if TYPE_CHECKING:
    from collections.abc import Callable

    from reqmanager.models.certificate import Certificate
    from reqmanager.repositories.certificate import CertificateRepository
    from reqmanager.repositories.certificate_request import CertificateRequestRepository
    from reqmanager.repositories.secret import SecretRepository
    from reqmanager.services.actions import ActionSink
    from reqmanager.services.key_material import KeyMaterialValidator
    from reqmanager.services.request_matcher import Classification
    from reqmanager.services.request_synthesizer import RequestSynthesizer

log = logging.getLogger(__name__)


def _read(operation: str, target: str, fn: Callable[[], Any]) -> Any:  # noqa: ANN401
    try:
        return fn()
    except (psycopg.Error, ValueError) as exc:
        # ValueError: a stored record that does not decode
        raise StoreOperationFailed(operation, target, exc) from exc


class RequestManager:
    """Drives owned CertificateRequests towards exactly one valid request."""

    def __init__(
        self,
        certificates: CertificateRepository,
        requests: CertificateRequestRepository,
        secrets: SecretRepository,
        sink: ActionSink,
        synthesizer: RequestSynthesizer,
        key_validator: KeyMaterialValidator,
    ) -> None:
        self._certificates = certificates
        self._requests = requests
        self._secrets = secrets
        self._sink = sink
        self._synthesizer = synthesizer
        self._key_validator = key_validator

    def process_item(self, key: str) -> ReconcileOutcome:
        """Run one reconcile pass for the Certificate stored under *key*.

        Raises
        ------
        StoreOperationFailed
            A read or a mutation against the store failed.
        SynthesisFailed
            The new request's CSR could not be built.

        """
        try:
            namespace, name = split_key(key)
        except MalformedKeyError as exc:
            log.debug("Ignoring invalid resource key: %s", exc)
            return ReconcileOutcome.SKIPPED

        certificate: Certificate | None = _read(
            "get",
            key,
            lambda: self._certificates.find_by_key(namespace, name),
        )
        if certificate is None:
            log.debug("Certificate %s not found", key)
            return ReconcileOutcome.SKIPPED

        if not certificate.is_issuing:
            log.debug("Certificate %s is not issuing", key)
            return ReconcileOutcome.SKIPPED

        secret_name = certificate.status.next_private_key_secret_name
        if not secret_name:
            log.debug("Certificate %s has no next private key yet", key)
            return ReconcileOutcome.SKIPPED

        secret_key = join_key(namespace, secret_name)
        secret = _read(
            "get",
            secret_key,
            lambda: self._secrets.find_by_key(namespace, secret_name),
        )
        key_material = self._key_validator.load(secret)
        if key_material is None:
            log.debug("Next private key %s is unavailable", secret_key)
            return ReconcileOutcome.SKIPPED
        if not key_material.conforms_to(certificate.spec):
            log.debug(
                "Next private key %s is %s/%s, spec wants %s/%s; waiting for key rotation",
                secret_key,
                key_material.algorithm,
                key_material.size,
                certificate.spec.key_algorithm,
                certificate.spec.key_size,
            )
            return ReconcileOutcome.SKIPPED

        target = MatchTarget(
            revision=next_revision(certificate.status.revision),
            secret_name=secret_name,
            spec=certificate.spec,
            public_key=key_material.public_key,
        )

        owned = _read(
            "list",
            f"certificaterequests owned by {key}",
            lambda: self._requests.find_owned_by(namespace, certificate.uid),
        )
        classifications = classify_requests(owned, target)

        mutated = self._delete_invalid(classifications)

        valid = [c.request for c in classifications if c.result == MatchResult.VALID]
        if valid:
            if len(valid) > 1:
                log.info(
                    "Multiple matching CertificateRequests found for %s: %s",
                    key,
                    ", ".join(sorted(r.name for r in valid)),
                )
            else:
                log.debug("CertificateRequest %s is valid for revision %d", valid[0].name, target.revision)
            return ReconcileOutcome.MUTATED if mutated else ReconcileOutcome.CONVERGED

        self._synthesizer.synthesize(certificate, key_material, target.revision, secret_name)
        return ReconcileOutcome.MUTATED

    def _delete_invalid(self, classifications: list[Classification]) -> bool:
        """Delete every invalid request; the first failure aborts."""
        deleted = False
        for classification in classifications:
            if not classification.result.is_invalid:
                continue
            log.info(
                "Deleting CertificateRequest %s: %s",
                classification.request.name,
                classification.detail or classification.result,
            )
            if self._sink.delete_request(classification.request, classification.result):
                deleted = True
        return deleted
