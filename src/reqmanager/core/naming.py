"""Object naming helpers.

New CertificateRequests are named ``<certificate>-<suffix>``.  The
suffix source is injected wherever names are generated so tests can
substitute a deterministic one.
"""

from __future__ import annotations

import re
import secrets
from collections.abc import Callable

NameGenerator = Callable[[int], str]

# Consonants and digits only, so generated suffixes never spell words
# and never contain ambiguous characters.
_ALPHABET = "bcdfghjklmnpqrstvwxz2456789"

MAX_BASE_NAME_LENGTH = 52

_TRAILING_NON_ALNUM = re.compile(r"[^a-z0-9]+$")


def random_suffix(length: int) -> str:
    """Return *length* random characters from a DNS-safe alphabet."""
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def dns_safe_shorten(name: str, limit: int = MAX_BASE_NAME_LENGTH) -> str:
    """Truncate *name* to *limit* characters, keeping it a valid DNS label prefix.

    Trailing ``-`` and ``.`` left behind by truncation are stripped.
    """
    if len(name) <= limit:
        return name
    return _TRAILING_NON_ALNUM.sub("", name[:limit])


def request_name(certificate_name: str, generator: NameGenerator, suffix_length: int = 5) -> str:
    """Build the name of a new CertificateRequest for *certificate_name*."""
    return f"{dns_safe_shorten(certificate_name)}-{generator(suffix_length)}"
