"""Private and public key helpers.

Decodes PEM private keys (PKCS#1, PKCS#8, SEC1) and answers the
questions the request manager asks about them: which algorithm, what
size, which signing hash, and whether two public keys are the same.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    PublicFormat,
    load_pem_private_key,
)

from reqmanager.core.types import KeyAlgorithm

if TYPE_CHECKING:
    from cryptography.hazmat.primitives.asymmetric.types import (
        PrivateKeyTypes,
        PublicKeyTypes,
    )

SupportedPrivateKey = rsa.RSAPrivateKey | ec.EllipticCurvePrivateKey | ed25519.Ed25519PrivateKey

_RSA_SHA384_MIN_BITS = 3072
_RSA_SHA512_MIN_BITS = 4096


class KeyDecodeError(ValueError):
    """Raised when bytes do not hold a supported private key."""


def decode_private_key(data: bytes) -> SupportedPrivateKey:
    """Decode an unencrypted PEM private key.

    Raises :class:`KeyDecodeError` for malformed, encrypted or
    unsupported keys.
    """
    try:
        key: PrivateKeyTypes = load_pem_private_key(data, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        msg = f"failed to decode private key: {exc}"
        raise KeyDecodeError(msg) from exc
    if not isinstance(
        key,
        (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey, ed25519.Ed25519PrivateKey),
    ):
        msg = f"unsupported private key type: {type(key).__name__}"
        raise KeyDecodeError(msg)
    return key


def key_algorithm(key: PublicKeyTypes | PrivateKeyTypes) -> KeyAlgorithm | None:
    """Return the :class:`KeyAlgorithm` of a public or private key."""
    if isinstance(key, (rsa.RSAPublicKey, rsa.RSAPrivateKey)):
        return KeyAlgorithm.RSA
    if isinstance(key, (ec.EllipticCurvePublicKey, ec.EllipticCurvePrivateKey)):
        return KeyAlgorithm.ECDSA
    if isinstance(key, (ed25519.Ed25519PublicKey, ed25519.Ed25519PrivateKey)):
        return KeyAlgorithm.ED25519
    return None


def key_size(key: PublicKeyTypes | PrivateKeyTypes) -> int | None:
    """Return the key size in bits, or None for fixed-size algorithms."""
    if isinstance(key, (rsa.RSAPublicKey, rsa.RSAPrivateKey)):
        return key.key_size
    if isinstance(key, (ec.EllipticCurvePublicKey, ec.EllipticCurvePrivateKey)):
        return key.curve.key_size
    return None


def signature_hash(key: SupportedPrivateKey) -> hashes.HashAlgorithm | None:
    """Pick the digest used to sign a CSR with *key*.

    Larger keys get stronger digests.  Ed25519 signs without a separate
    digest, so ``None`` is returned for it.
    """
    if isinstance(key, rsa.RSAPrivateKey):
        if key.key_size >= _RSA_SHA512_MIN_BITS:
            return hashes.SHA512()
        if key.key_size >= _RSA_SHA384_MIN_BITS:
            return hashes.SHA384()
        return hashes.SHA256()
    if isinstance(key, ec.EllipticCurvePrivateKey):
        if isinstance(key.curve, ec.SECP521R1):
            return hashes.SHA512()
        if isinstance(key.curve, ec.SECP384R1):
            return hashes.SHA384()
        return hashes.SHA256()
    return None


def public_key_der(key: PublicKeyTypes) -> bytes:
    """SubjectPublicKeyInfo DER encoding of *key*."""
    return key.public_bytes(Encoding.DER, PublicFormat.SubjectPublicKeyInfo)


def public_keys_equal(a: PublicKeyTypes, b: PublicKeyTypes) -> bool:
    """True when *a* and *b* encode to the same SubjectPublicKeyInfo."""
    try:
        return public_key_der(a) == public_key_der(b)
    except (ValueError, TypeError, UnsupportedAlgorithm):
        return False
