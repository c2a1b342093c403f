"""Request manager configuration loader built on ConfigKit.

Lifecycle::

    # 1. CLI creates the singleton (once, at startup)
    ReqManagerConfig(config_file="/etc/reqmanager/config.yaml")

    # 2. Any module retrieves it afterwards
    from reqmanager.config import get_config
    cfg = get_config()
    cfg.settings.controller.workers  # typed access

String values of the form ``${VAR}`` or ``${VAR:-default}`` are
replaced from the environment before the schema is checked, so
``database.password: ${REQMANAGER_DB_PASSWORD}`` keeps secrets out of
the file.
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from configkit import ConfigKit, ConfigKitMeta

from reqmanager.config.settings import ReqManagerSettings, build_settings

_SCHEMA_PATH = Path(__file__).parent / "schema.json"

_ENV_REF = re.compile(r"^\$\{(?P<name>[^}:]+?)(?::-(?P<default>.*))?\}$", re.DOTALL)

MAX_NAME_SUFFIX_LENGTH = 10

log = logging.getLogger(__name__)

_instance: ReqManagerConfig | None = None


def get_config() -> ReqManagerConfig:
    """Return the configuration singleton.

    Raises :class:`RuntimeError` before the CLI has created it.
    """
    if _instance is None:
        msg = "Configuration not initialised; create ReqManagerConfig(config_file=...) first."
        raise RuntimeError(msg)
    return _instance


class ConfigValidationError(Exception):
    """One or more configuration problems, reported together."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        body = "\n".join(f"  - {e}" for e in errors)
        super().__init__(f"Configuration validation failed:\n{body}")


# ---------------------------------------------------------------------------
# Environment variable expansion
# ---------------------------------------------------------------------------


def expand_env(data: Any, path: str = "") -> Any:  # noqa: ANN401
    """Return a copy of *data* with every ``${VAR}`` reference expanded.

    All unset variables without a default are collected and raised as a
    single :class:`ConfigValidationError`.
    """
    missing: list[str] = []
    result = _expand(data, path, missing)
    if missing:
        raise ConfigValidationError(missing)
    return result


def _expand(node: Any, path: str, missing: list[str]) -> Any:  # noqa: ANN401
    if isinstance(node, dict):
        return {k: _expand(v, f"{path}.{k}" if path else k, missing) for k, v in node.items()}
    if isinstance(node, list):
        return [_expand(v, f"{path}[{i}]", missing) for i, v in enumerate(node)]
    if not isinstance(node, str):
        return node

    match = _ENV_REF.match(node)
    if match is None:
        return node
    value = os.environ.get(match["name"], match["default"])
    if value is None:
        missing.append(
            f"environment variable ${{{match['name']}}} referenced at '{path}' "
            "is not set and has no default",
        )
    return value


def _read_source(path: str) -> dict:
    with open(path, encoding="utf-8") as f:  # noqa: PTH123
        if path.endswith((".yaml", ".yml")):
            return yaml.safe_load(f) or {}
        return json.load(f)


# ---------------------------------------------------------------------------
# Cross-field checks
# ---------------------------------------------------------------------------


def _cross_field_errors(data: dict) -> list[str]:
    database = data.get("database") or {}
    controller = data.get("controller") or {}
    errors = []

    min_conn = database.get("min_connections", 2)
    max_conn = database.get("max_connections", 10)
    if min_conn > max_conn:
        errors.append(
            f"database.min_connections ({min_conn}) exceeds database.max_connections ({max_conn})",
        )

    base = controller.get("base_backoff_seconds", 0.5)
    cap = controller.get("max_backoff_seconds", 300.0)
    if cap < base:
        errors.append(
            f"controller.max_backoff_seconds ({cap}) is below "
            f"controller.base_backoff_seconds ({base})",
        )

    suffix = controller.get("name_suffix_length", 5)
    if not 1 <= suffix <= MAX_NAME_SUFFIX_LENGTH:
        errors.append(
            f"controller.name_suffix_length must be between 1 and "
            f"{MAX_NAME_SUFFIX_LENGTH} (got {suffix})",
        )

    workers = controller.get("workers", 4)
    if workers < 1:
        errors.append(f"controller.workers must be >= 1 (got {workers})")

    return errors


# ---------------------------------------------------------------------------
# Config class
# ---------------------------------------------------------------------------


class ReqManagerConfig(ConfigKit):
    """Central configuration for the request manager.

    The JSON schema is bundled at ``config/schema.json``; callers only
    supply ``config_file``.  ``schema_file`` is accepted and ignored so
    the :class:`ConfigKitMeta` singleton guard sees a stable signature.
    """

    def __init__(
        self,
        *,
        config_file: str | Path,
        schema_file: str | Path | None = None,  # noqa: ARG002
    ) -> None:
        global _instance  # noqa: PLW0603

        super().__init__(config_file=config_file, schema_file=_SCHEMA_PATH)
        self._data["_source"] = str(config_file)
        self._settings: ReqManagerSettings = build_settings(self.data)
        _instance = self

    def _load(self) -> None:
        super()._load()
        self._data = expand_env(self._data)

    @property
    def settings(self) -> ReqManagerSettings:
        return self._settings

    def additional_checks(self) -> None:
        """Run by ConfigKit once the schema has passed."""
        errors = _cross_field_errors(self.data)
        if errors:
            raise ConfigValidationError(errors)

    def reload_settings(self) -> ReqManagerSettings:
        """Re-read the source file and build fresh settings (SIGHUP).

        The singleton and :attr:`settings` are left untouched; the
        caller decides what to apply.
        """
        source = self.data.get("_source", "")
        if not source:
            msg = "Cannot reload: no source file recorded"
            raise RuntimeError(msg)
        data = expand_env(_read_source(source))
        errors = _cross_field_errors(data)
        if errors:
            raise ConfigValidationError(errors)
        return build_settings(data)

    @classmethod
    def reset(cls) -> None:
        """Drop the singleton.  Tests only."""
        global _instance  # noqa: PLW0603
        _instance = None
        ConfigKitMeta.reset()

    def __repr__(self) -> str:
        return f"<ReqManagerConfig config_file={self.data.get('_source', '?')}>"
