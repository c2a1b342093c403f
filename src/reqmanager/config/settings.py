"""Typed, frozen dataclasses for every configuration section.

This module is the **single source of truth** for default values.
JSON Schema defaults exist only for documentation; these builders are
what the application actually reads.

Access pattern::

    from reqmanager.config import get_config

    controller = get_config().settings.controller
    print(controller.workers, controller.resync_seconds)
"""

from __future__ import annotations

from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ServerSettings:
    """HTTP server for health and metrics (bind address, workers, timeouts)."""

    bind: str
    port: int
    workers: int
    timeout: int
    graceful_timeout: int
    keepalive: int


def _build_server(data: dict | None) -> ServerSettings:
    d = data or {}
    return ServerSettings(
        bind=d.get("bind", "0.0.0.0"),  # noqa: S104
        port=d.get("port", 9402),
        workers=d.get("workers", 1),
        timeout=d.get("timeout", 30),
        graceful_timeout=d.get("graceful_timeout", 30),
        keepalive=d.get("keepalive", 2),
    )


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuditLogSettings:
    """Audit log output settings (file and rotation)."""

    enabled: bool
    file: str | None
    max_file_size_bytes: int
    backup_count: int


@dataclass(frozen=True)
class LoggingSettings:
    level: str
    format: str
    audit: AuditLogSettings


def _build_logging(data: dict | None) -> LoggingSettings:
    d = data or {}
    a = d.get("audit") or {}
    return LoggingSettings(
        level=d.get("level", "INFO"),
        format=d.get("format", "json"),
        audit=AuditLogSettings(
            enabled=a.get("enabled", True),
            file=a.get("file"),
            max_file_size_bytes=a.get("max_file_size_bytes", 104857600),
            backup_count=a.get("backup_count", 10),
        ),
    )


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    """PostgreSQL connection and pool settings."""

    host: str
    port: int
    database: str
    user: str
    password: str
    sslmode: str
    min_connections: int
    max_connections: int
    connection_timeout: float
    auto_setup: bool


def _build_database(data: dict | None) -> DatabaseSettings:
    d = data or {}
    return DatabaseSettings(
        host=d.get("host", "localhost"),
        port=d.get("port", 5432),
        database=d["database"],
        user=d["user"],
        password=d.get("password", ""),
        sslmode=d.get("sslmode", "prefer"),
        min_connections=d.get("min_connections", 2),
        max_connections=d.get("max_connections", 10),
        connection_timeout=d.get("connection_timeout", 30.0),
        auto_setup=d.get("auto_setup", False),
    )


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ControllerSettings:
    """Reconcile loop: worker pool, resync period and retry backoff."""

    workers: int
    resync_seconds: int
    base_backoff_seconds: float
    max_backoff_seconds: float
    name_suffix_length: int
    leader_election: bool
    namespaces: tuple[str, ...]
    private_key_secret_key: str


def _build_controller(data: dict | None) -> ControllerSettings:
    d = data or {}
    return ControllerSettings(
        workers=d.get("workers", 4),
        resync_seconds=d.get("resync_seconds", 30),
        base_backoff_seconds=d.get("base_backoff_seconds", 0.5),
        max_backoff_seconds=d.get("max_backoff_seconds", 300.0),
        name_suffix_length=d.get("name_suffix_length", 5),
        leader_election=d.get("leader_election", True),
        namespaces=tuple(d.get("namespaces") or ()),
        private_key_secret_key=d.get("private_key_secret_key", "tls.key"),
    )


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MetricsSettings:
    enabled: bool
    path: str


def _build_metrics(data: dict | None) -> MetricsSettings:
    d = data or {}
    return MetricsSettings(
        enabled=d.get("enabled", True),
        path=d.get("path", "/metrics"),
    )


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReqManagerSettings:
    """Top-level settings container (one attribute per section)."""

    server: ServerSettings
    database: DatabaseSettings
    logging: LoggingSettings
    controller: ControllerSettings
    metrics: MetricsSettings


def build_settings(data: dict) -> ReqManagerSettings:
    """Build the full typed settings tree from raw config data.

    Called once during :class:`ReqManagerConfig` initialization after
    schema validation and environment-variable resolution.
    """
    return ReqManagerSettings(
        server=_build_server(data.get("server")),
        database=_build_database(data.get("database")),
        logging=_build_logging(data.get("logging")),
        controller=_build_controller(data.get("controller")),
        metrics=_build_metrics(data.get("metrics")),
    )
