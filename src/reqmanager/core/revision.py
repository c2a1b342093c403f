"""Certificate revision arithmetic.

A Certificate's ``status.revision`` counts successful issuances.  The
request for the *next* issuance is always annotated with
``revision + 1``; an unset revision counts as zero.
"""

from __future__ import annotations


def next_revision(current: int | None) -> int:
    """Return the revision the next CertificateRequest must carry."""
    if current is None:
        return 1
    if current < 0:
        msg = f"certificate revision must be >= 0, got {current}"
        raise ValueError(msg)
    return current + 1


def parse_revision(value: str | None) -> int | None:
    """Decode a revision annotation.

    Only plain ASCII decimal digits are accepted.  Returns ``None`` for a
    missing, empty, signed, padded or otherwise non-numeric value.
    """
    if not value or not value.isascii() or not value.isdigit():
        return None
    return int(value)


def format_revision(revision: int) -> str:
    """Encode *revision* in canonical decimal form."""
    if revision < 0:
        msg = f"revision must be >= 0, got {revision}"
        raise ValueError(msg)
    return str(revision)
