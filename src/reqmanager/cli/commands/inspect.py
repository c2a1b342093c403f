"""Inspect subcommand: query stored resources for debugging.

Usage::

    reqmanager -c config.yaml inspect certificate default/my-cert

Prints the Certificate status, the next private key's availability,
each owned CertificateRequest with its classification, and the most
recent events, as JSON.
"""

from __future__ import annotations

import json
import sys


def run_inspect(config, args) -> None:
    """Dispatch to the appropriate inspect sub-handler."""
    sub = getattr(args, "inspect_command", None)
    if sub != "certificate":
        sys.stderr.write("usage: reqmanager inspect certificate KEY\n")
        sys.exit(1)

    from reqmanager.app.context import Container
    from reqmanager.db import init_database

    db = init_database(config.settings.database)
    container = Container(db, config.settings)
    result = inspect_certificate(container, args.key)
    if result is None:
        sys.stderr.write(f"certificate not found: {args.key}\n")
        sys.exit(1)
    sys.stdout.write(json.dumps(result, indent=2, default=str) + "\n")


def inspect_certificate(container, key: str) -> dict | None:
    """Build the inspection report for the Certificate at *key*."""
    from reqmanager.core.keys import MalformedKeyError, split_key
    from reqmanager.core.revision import next_revision
    from reqmanager.core.types import CERTIFICATE_KIND
    from reqmanager.services.request_matcher import MatchTarget, explain_request

    try:
        namespace, name = split_key(key)
    except MalformedKeyError:
        return None

    certificate = container.certificates.find_by_key(namespace, name)
    if certificate is None:
        return None

    status = certificate.status
    target_revision = next_revision(status.revision)
    result: dict = {
        "key": key,
        "uid": str(certificate.uid),
        "issuing": certificate.is_issuing,
        "revision": status.revision,
        "target_revision": target_revision,
        "next_private_key_secret_name": status.next_private_key_secret_name,
    }

    key_material = None
    if status.next_private_key_secret_name:
        secret = container.secrets.find_by_key(namespace, status.next_private_key_secret_name)
        key_material = container.key_validator.load(secret)
    result["key_available"] = key_material is not None
    if key_material is not None:
        result["private_key"] = {
            "algorithm": key_material.algorithm.value,
            "size": key_material.size,
            "conforms": key_material.conforms_to(certificate.spec),
        }

    requests = container.certificate_requests.find_owned_by(namespace, certificate.uid)
    entries = []
    for request in sorted(requests, key=lambda r: r.name):
        entry: dict = {"name": request.name, "annotations": request.annotations}
        if key_material is not None:
            target = MatchTarget(
                revision=target_revision,
                secret_name=status.next_private_key_secret_name,
                spec=certificate.spec,
                public_key=key_material.public_key,
            )
            classification = explain_request(request, target)
            entry["classification"] = classification.result.value
            if classification.detail:
                entry["detail"] = classification.detail
            if classification.violations:
                entry["violations"] = list(classification.violations)
        entries.append(entry)
    result["requests"] = entries

    events = container.events.find_for(CERTIFICATE_KIND, namespace, name, limit=10)
    result["events"] = [
        {"type": e.event_type.value, "reason": e.reason, "message": e.message, "at": e.created_at}
        for e in events
    ]
    return result
