"""Request synthesis.

Builds a new CertificateRequest for a Certificate: a CSR signed with
the next private key, the revision and key annotations, the owner
reference, and the request-level fields copied from the spec.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from uuid import uuid4

from cryptography.exceptions import UnsupportedAlgorithm

from reqmanager.app.errors import SynthesisFailed
from reqmanager.core.keys import join_key
from reqmanager.core.naming import random_suffix, request_name
from reqmanager.core.revision import format_revision
from reqmanager.core.types import PRIVATE_KEY_ANNOTATION, REVISION_ANNOTATION, EventType
from reqmanager.models.certificate_request import (
    CertificateRequest,
    CertificateRequestSpec,
    OwnerReference,
)
from reqmanager.pki.csr import build_csr, encode_csr

if TYPE_CHECKING:
    from reqmanager.core.naming import NameGenerator
    from reqmanager.models.certificate import Certificate
    from reqmanager.services.actions import ActionSink
    from reqmanager.services.key_material import KeyMaterial

log = logging.getLogger(__name__)

REASON_REQUESTED = "Requested"


class RequestSynthesizer:
    """Creates CertificateRequests through an :class:`ActionSink`."""

    def __init__(
        self,
        sink: ActionSink,
        name_generator: NameGenerator = random_suffix,
        suffix_length: int = 5,
    ) -> None:
        self._sink = sink
        self._name_generator = name_generator
        self._suffix_length = suffix_length

    def build(
        self,
        certificate: Certificate,
        key_material: KeyMaterial,
        revision: int,
        secret_name: str,
    ) -> CertificateRequest:
        """Build the request object without persisting it.

        Raises
        ------
        SynthesisFailed
            If the CSR cannot be built or encoded.

        """
        spec = certificate.spec
        try:
            csr_pem = encode_csr(build_csr(spec, key_material.private_key))
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise SynthesisFailed(join_key(certificate.namespace, certificate.name), exc) from exc

        return CertificateRequest(
            uid=uuid4(),
            namespace=certificate.namespace,
            name=request_name(certificate.name, self._name_generator, self._suffix_length),
            spec=CertificateRequestSpec(
                csr_pem=csr_pem,
                issuer_ref=spec.issuer_ref,
                duration_seconds=spec.duration_seconds,
                is_ca=spec.is_ca,
                usages=spec.usages,
            ),
            owner_ref=OwnerReference(uid=certificate.uid, name=certificate.name),
            annotations={
                PRIVATE_KEY_ANNOTATION: secret_name,
                REVISION_ANNOTATION: format_revision(revision),
            },
            labels=dict(certificate.labels),
        )

    def synthesize(
        self,
        certificate: Certificate,
        key_material: KeyMaterial,
        revision: int,
        secret_name: str,
    ) -> CertificateRequest:
        """Build, create and announce a new request for *revision*.

        Raises :class:`SynthesisFailed` when the CSR cannot be built or
        encoded, and :class:`StoreOperationFailed` (retryable) when the
        store rejects the create, a name collision included.
        """
        request = self.build(certificate, key_material, revision, secret_name)
        self._sink.create_request(request)
        log.debug(
            "Requested revision %d for %s/%s as %s",
            revision,
            certificate.namespace,
            certificate.name,
            request.name,
        )
        self._sink.record_event(
            certificate,
            EventType.NORMAL,
            REASON_REQUESTED,
            f'Created new CertificateRequest resource "{request.name}"',
        )
        return request
