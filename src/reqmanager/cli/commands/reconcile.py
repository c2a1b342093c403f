"""Reconcile subcommand: one synchronous pass for one Certificate.

Usage::

    reqmanager -c config.yaml reconcile default/my-cert
"""

from __future__ import annotations

import json
import sys


def run_reconcile(config, args) -> None:
    from reqmanager.app.context import Container
    from reqmanager.app.errors import ReconcileError
    from reqmanager.db import init_database
    from reqmanager.logging import reconcile_context

    db = init_database(config.settings.database)
    container = Container(db, config.settings)

    with reconcile_context(args.key):
        try:
            outcome = container.request_manager.process_item(args.key)
        except ReconcileError as exc:
            sys.stdout.write(json.dumps({"key": args.key, "error": exc.to_dict()}) + "\n")
            sys.exit(1)

    sys.stdout.write(json.dumps({"key": args.key, "outcome": outcome.value}) + "\n")
