"""Logging subsystem for the request manager.

Public API::

    from reqmanager.logging import configure_logging, reconcile_context

    configure_logging(settings.logging)
    with reconcile_context("default/my-cert", worker_id=2):
        ...
"""

from reqmanager.logging.setup import configure_logging, reconcile_context

__all__ = ["configure_logging", "reconcile_context"]
