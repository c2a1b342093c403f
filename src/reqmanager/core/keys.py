"""Store keys: the ``namespace/name`` strings passed to the reconciler."""

from __future__ import annotations


class MalformedKeyError(ValueError):
    """Raised when a store key cannot be split into namespace and name."""


def split_key(key: str) -> tuple[str, str]:
    """Split *key* into ``(namespace, name)``.

    A key without a slash names a cluster-scoped object and yields an
    empty namespace.  Empty keys, empty names and keys with more than
    one slash are rejected.
    """
    parts = key.split("/")
    if len(parts) == 1:
        namespace, name = "", parts[0]
    elif len(parts) == 2:  # noqa: PLR2004
        namespace, name = parts
    else:
        msg = f"unexpected key format: {key!r}"
        raise MalformedKeyError(msg)
    if not name:
        msg = f"key has an empty name: {key!r}"
        raise MalformedKeyError(msg)
    return namespace, name


def join_key(namespace: str, name: str) -> str:
    """Inverse of :func:`split_key`."""
    if not namespace:
        return name
    return f"{namespace}/{name}"
