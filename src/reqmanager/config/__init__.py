"""Configuration subsystem for the request manager.

Public API::

    from reqmanager.config import get_config, ReqManagerConfig

    # At startup (CLI only):
    ReqManagerConfig(config_file="config.yaml")

    # Everywhere else:
    cfg = get_config()
    workers = cfg.settings.controller.workers
"""

from reqmanager.config.reqmanager_config import (
    ConfigValidationError,
    ReqManagerConfig,
    get_config,
)
from reqmanager.config.settings import (
    AuditLogSettings,
    ControllerSettings,
    DatabaseSettings,
    LoggingSettings,
    MetricsSettings,
    ReqManagerSettings,
    ServerSettings,
)

__all__ = [
    "AuditLogSettings",
    "ConfigValidationError",
    "ControllerSettings",
    "DatabaseSettings",
    "LoggingSettings",
    "MetricsSettings",
    "ReqManagerConfig",
    "ReqManagerSettings",
    "ServerSettings",
    "get_config",
]
