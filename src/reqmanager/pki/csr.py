"""Certificate signing request helpers.

Builds a CSR from a :class:`CertificateSpec`, decodes stored CSR bytes,
and lists the ways an existing request disagrees with a spec.
"""

from __future__ import annotations

import ipaddress
from typing import TYPE_CHECKING

from cryptography import x509
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from reqmanager.pki.keys import key_algorithm, key_size, signature_hash

if TYPE_CHECKING:
    from collections.abc import Iterable

    from reqmanager.models.certificate import CertificateSpec
    from reqmanager.models.certificate_request import CertificateRequest
    from reqmanager.pki.keys import SupportedPrivateKey

# ---------------------------------------------------------------------------
# Usage name -> extension mappings
# ---------------------------------------------------------------------------

_KEY_USAGE_FIELDS: dict[str, str] = {
    "signing": "digital_signature",
    "digital signature": "digital_signature",
    "content commitment": "content_commitment",
    "key encipherment": "key_encipherment",
    "key agreement": "key_agreement",
    "data encipherment": "data_encipherment",
    "cert sign": "key_cert_sign",
    "crl sign": "crl_sign",
    "encipher only": "encipher_only",
    "decipher only": "decipher_only",
}

_EKU_OIDS = {
    "any": ExtendedKeyUsageOID.ANY_EXTENDED_KEY_USAGE,
    "server auth": ExtendedKeyUsageOID.SERVER_AUTH,
    "client auth": ExtendedKeyUsageOID.CLIENT_AUTH,
    "code signing": ExtendedKeyUsageOID.CODE_SIGNING,
    "email protection": ExtendedKeyUsageOID.EMAIL_PROTECTION,
    "timestamping": ExtendedKeyUsageOID.TIME_STAMPING,
    "ocsp signing": ExtendedKeyUsageOID.OCSP_SIGNING,
}

KNOWN_USAGES: frozenset[str] = frozenset(_KEY_USAGE_FIELDS) | frozenset(_EKU_OIDS)


def _build_key_usage(usages: Iterable[str]) -> x509.KeyUsage | None:
    flags = {_KEY_USAGE_FIELDS[u] for u in usages if u in _KEY_USAGE_FIELDS}
    if not flags:
        return None
    ka = "key_agreement" in flags
    return x509.KeyUsage(
        digital_signature="digital_signature" in flags,
        content_commitment="content_commitment" in flags,
        key_encipherment="key_encipherment" in flags,
        data_encipherment="data_encipherment" in flags,
        key_agreement=ka,
        key_cert_sign="key_cert_sign" in flags,
        crl_sign="crl_sign" in flags,
        encipher_only="encipher_only" in flags if ka else False,
        decipher_only="decipher_only" in flags if ka else False,
    )


def _build_eku(usages: Iterable[str]) -> x509.ExtendedKeyUsage | None:
    oids = [_EKU_OIDS[u] for u in usages if u in _EKU_OIDS]
    if not oids:
        return None
    return x509.ExtendedKeyUsage(oids)


def _general_names(spec: CertificateSpec) -> list[x509.GeneralName]:
    names: list[x509.GeneralName] = [x509.DNSName(n) for n in spec.dns_names]
    names.extend(x509.IPAddress(ipaddress.ip_address(ip)) for ip in spec.ip_addresses)
    names.extend(x509.UniformResourceIdentifier(u) for u in spec.uris)
    names.extend(x509.RFC822Name(e) for e in spec.email_addresses)
    return names


# ---------------------------------------------------------------------------
# Build / encode / decode
# ---------------------------------------------------------------------------


def build_csr(
    spec: CertificateSpec,
    private_key: SupportedPrivateKey,
) -> x509.CertificateSigningRequest:
    """Build and sign a CSR describing *spec* with *private_key*.

    Raises :class:`ValueError` when the spec holds values that cannot
    be encoded (bad IP address, unknown usage, ...).
    """
    unknown = sorted(set(spec.usages) - KNOWN_USAGES)
    if unknown:
        msg = f"unknown key usages: {unknown}"
        raise ValueError(msg)

    attrs = []
    if spec.common_name:
        attrs.append(x509.NameAttribute(NameOID.COMMON_NAME, spec.common_name))
    attrs.extend(x509.NameAttribute(NameOID.ORGANIZATION_NAME, o) for o in spec.organizations)

    builder = x509.CertificateSigningRequestBuilder().subject_name(x509.Name(attrs))

    sans = _general_names(spec)
    if sans:
        builder = builder.add_extension(x509.SubjectAlternativeName(sans), critical=False)
    if spec.is_ca:
        builder = builder.add_extension(
            x509.BasicConstraints(ca=True, path_length=None),
            critical=True,
        )
    key_usage = _build_key_usage(spec.usages)
    if key_usage is not None:
        builder = builder.add_extension(key_usage, critical=True)
    eku = _build_eku(spec.usages)
    if eku is not None:
        builder = builder.add_extension(eku, critical=False)

    return builder.sign(private_key, signature_hash(private_key))


def encode_csr(csr: x509.CertificateSigningRequest) -> bytes:
    """PEM-encode *csr*."""
    return csr.public_bytes(Encoding.PEM)


def decode_csr(data: bytes) -> x509.CertificateSigningRequest:
    """Decode PEM or DER CSR bytes and verify the self-signature.

    Raises :class:`ValueError` for anything that is not a well-formed,
    correctly self-signed request.
    """
    if not data:
        msg = "empty CSR"
        raise ValueError(msg)
    if data.lstrip().startswith(b"-----BEGIN"):
        csr = x509.load_pem_x509_csr(data)
    else:
        csr = x509.load_der_x509_csr(data)
    if not csr.is_signature_valid:
        msg = "CSR signature does not verify against its public key"
        raise ValueError(msg)
    return csr


# ---------------------------------------------------------------------------
# Comparison
# ---------------------------------------------------------------------------


def _normalise_ip(value: str) -> str:
    try:
        return str(ipaddress.ip_address(value))
    except ValueError:
        return value


def _subject_values(csr: x509.CertificateSigningRequest, oid) -> list[str]:
    return [str(a.value) for a in csr.subject.get_attributes_for_oid(oid)]


def _san_values(csr: x509.CertificateSigningRequest, kind) -> list:
    try:
        ext = csr.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    except x509.ExtensionNotFound:
        return []
    return ext.value.get_values_for_type(kind)


def csr_spec_violations(
    csr: x509.CertificateSigningRequest,
    request: CertificateRequest,
    spec: CertificateSpec,
) -> list[str]:
    """Return the names of fields where *csr*/*request* disagree with *spec*.

    An empty list means the request was synthesised from this spec.
    Multi-valued fields are compared as sets.
    """
    violations: list[str] = []

    common_names = _subject_values(csr, NameOID.COMMON_NAME)
    if (common_names[0] if common_names else None) != (spec.common_name or None):
        violations.append("spec.commonName")
    if set(_subject_values(csr, NameOID.ORGANIZATION_NAME)) != set(spec.organizations):
        violations.append("spec.subject.organizations")
    if set(_san_values(csr, x509.DNSName)) != set(spec.dns_names):
        violations.append("spec.dnsNames")
    csr_ips = {str(ip) for ip in _san_values(csr, x509.IPAddress)}
    if csr_ips != {_normalise_ip(ip) for ip in spec.ip_addresses}:
        violations.append("spec.ipAddresses")
    if set(_san_values(csr, x509.UniformResourceIdentifier)) != set(spec.uris):
        violations.append("spec.uris")
    if set(_san_values(csr, x509.RFC822Name)) != set(spec.email_addresses):
        violations.append("spec.emailAddresses")

    public_key = csr.public_key()
    if key_algorithm(public_key) != spec.key_algorithm:
        violations.append("spec.privateKey.algorithm")
    elif spec.key_size is not None and key_size(public_key) not in (None, spec.key_size):
        violations.append("spec.privateKey.size")

    if request.spec.duration_seconds != spec.duration_seconds:
        violations.append("spec.duration")
    if request.spec.issuer_ref != spec.issuer_ref:
        violations.append("spec.issuerRef")
    if request.spec.is_ca != spec.is_ca:
        violations.append("spec.isCA")
    if set(request.spec.usages) != set(spec.usages):
        violations.append("spec.usages")

    return violations
