"""Key material validation.

Turns the raw ``data`` of the next-private-key Secret into a decoded
key pair.  Every failure (missing entry, empty value, undecodable or
unsupported key) collapses into a single *unavailable* outcome,
represented by ``None``: the caller waits for the key-rotation
collaborator and never surfaces an error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from reqmanager.core.types import TLS_PRIVATE_KEY_KEY
from reqmanager.pki.keys import KeyDecodeError, decode_private_key, key_algorithm, key_size

if TYPE_CHECKING:
    from collections.abc import Mapping

    from cryptography.hazmat.primitives.asymmetric.types import PublicKeyTypes

    from reqmanager.core.types import KeyAlgorithm
    from reqmanager.models.certificate import CertificateSpec
    from reqmanager.models.secret import Secret
    from reqmanager.pki.keys import SupportedPrivateKey

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeyMaterial:
    """A decoded private key and the public half used for comparisons."""

    private_key: SupportedPrivateKey
    public_key: PublicKeyTypes
    algorithm: KeyAlgorithm
    size: int | None

    def conforms_to(self, spec: CertificateSpec) -> bool:
        """True when the key has the algorithm (and size, if set) *spec* asks for."""
        if self.algorithm != spec.key_algorithm:
            return False
        return spec.key_size is None or self.size is None or self.size == spec.key_size


def decode_key_material(
    data: Mapping[str, bytes] | None,
    entry: str = TLS_PRIVATE_KEY_KEY,
) -> KeyMaterial | None:
    """Decode the private key stored under *entry* in *data*.

    Returns ``None`` when the key is unavailable for any reason.
    """
    raw = (data or {}).get(entry)
    if not raw:
        log.debug("Secret has no data under %r", entry)
        return None
    try:
        private_key = decode_private_key(raw)
    except KeyDecodeError as exc:
        log.debug("Secret entry %r is not a usable private key: %s", entry, exc)
        return None
    public_key = private_key.public_key()
    algorithm = key_algorithm(private_key)
    if algorithm is None:
        return None
    return KeyMaterial(
        private_key=private_key,
        public_key=public_key,
        algorithm=algorithm,
        size=key_size(private_key),
    )


class KeyMaterialValidator:
    """Loads key material from Secrets using a configurable data entry."""

    def __init__(self, entry: str = TLS_PRIVATE_KEY_KEY) -> None:
        self._entry = entry

    def load(self, secret: Secret | None) -> KeyMaterial | None:
        if secret is None:
            return None
        return decode_key_material(secret.data, self._entry)
