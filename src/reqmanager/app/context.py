"""Dependency injection container for the request manager.

Created once during application startup and stored on the Flask app
via ``app.extensions["container"]``.  Accessible from any request
context with :func:`get_container`.  The CLI builds one directly for
one-shot commands.

Usage::

    from reqmanager.app.context import get_container

    c = get_container()
    outcome = c.request_manager.process_item("default/my-cert")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from flask import current_app

if TYPE_CHECKING:
    from pypgkit import Database

    from reqmanager.app.shutdown import ShutdownCoordinator
    from reqmanager.config.settings import ReqManagerSettings
    from reqmanager.core.naming import NameGenerator


class Container:
    """Application-wide dependency container.

    Holds a reference to the :class:`Database` singleton, the
    repositories built on it, and the reconcile services wired on top.
    """

    def __init__(
        self,
        db: Database,
        settings: ReqManagerSettings,
        shutdown_coordinator: ShutdownCoordinator | None = None,
        name_generator: NameGenerator | None = None,
    ) -> None:
        from reqmanager.core.naming import random_suffix  # noqa: PLC0415
        from reqmanager.core.queue import WorkQueue  # noqa: PLC0415
        from reqmanager.metrics.collector import MetricsCollector  # noqa: PLC0415
        from reqmanager.repositories import (  # noqa: PLC0415
            CertificateRepository,
            CertificateRequestRepository,
            EventRepository,
            SecretRepository,
        )
        from reqmanager.services import (  # noqa: PLC0415
            ActionSink,
            EventRecorder,
            KeyMaterialValidator,
            ReconcileWorker,
            RequestManager,
            RequestSynthesizer,
        )

        controller = settings.controller

        self.db: Database = db
        self.settings: ReqManagerSettings = settings
        self.shutdown_coordinator = shutdown_coordinator
        self.metrics_collector = MetricsCollector() if settings.metrics.enabled else None

        self.certificates = CertificateRepository(db)
        self.certificate_requests = CertificateRequestRepository(db)
        self.secrets = SecretRepository(db)
        self.events = EventRepository(db)

        self.recorder = EventRecorder(self.events)
        self.sink = ActionSink(
            self.certificate_requests,
            self.recorder,
            metrics=self.metrics_collector,
        )
        self.synthesizer = RequestSynthesizer(
            self.sink,
            name_generator=name_generator or random_suffix,
            suffix_length=controller.name_suffix_length,
        )
        self.key_validator = KeyMaterialValidator(controller.private_key_secret_key)
        self.request_manager = RequestManager(
            certificates=self.certificates,
            requests=self.certificate_requests,
            secrets=self.secrets,
            sink=self.sink,
            synthesizer=self.synthesizer,
            key_validator=self.key_validator,
        )

        self.queue = WorkQueue(
            base_delay=controller.base_backoff_seconds,
            max_delay=controller.max_backoff_seconds,
        )
        self.worker = ReconcileWorker(
            self.request_manager,
            self.certificates,
            self.queue,
            controller,
            metrics=self.metrics_collector,
            db=db,
            shutdown_coordinator=shutdown_coordinator,
        )


def get_container() -> Container:
    """Return the :class:`Container` from the current Flask app.

    Raises :class:`RuntimeError` if the database was not initialised
    (i.e. ``create_app`` was called without a ``database`` argument).
    """
    container = current_app.extensions.get("container")
    if container is None:
        msg = (
            "Dependency container not available -- "
            "create_app() was called without a database"
        )
        raise RuntimeError(msg)
    return container
