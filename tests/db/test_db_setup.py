"""Tests for reqmanager.db.init: config mapping, singleton reuse and schema helpers."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

from reqmanager.config.settings import DatabaseSettings
from reqmanager.db.init import (
    SCHEMA_PATH,
    TABLES,
    _settings_to_config,
    apply_schema,
    init_database,
    missing_tables,
)


def _settings(**overrides) -> DatabaseSettings:
    fields = {
        "host": "db.example",
        "port": 5433,
        "database": "reqmanager",
        "user": "controller",
        "password": "secret",
        "sslmode": "require",
        "min_connections": 1,
        "max_connections": 5,
        "connection_timeout": 10.0,
        "auto_setup": False,
    }
    fields.update(overrides)
    return DatabaseSettings(**fields)


class TestSettingsToConfig:
    @patch("reqmanager.db.init.DatabaseConfig")
    def test_maps_every_field(self, mock_config):
        _settings_to_config(_settings())

        mock_config.assert_called_once_with(
            host="db.example",
            port=5433,
            database="reqmanager",
            user="controller",
            password="secret",
            sslmode="require",
            min_connections=1,
            max_connections=5,
            connection_timeout=10.0,
        )


class TestInitDatabase:
    @patch("reqmanager.db.init.Database")
    def test_returns_existing_instance(self, mock_db):
        mock_db.is_initialized.return_value = True

        result = init_database(_settings())

        assert result is mock_db.get_instance.return_value
        mock_db.init.assert_not_called()

    @patch("reqmanager.db.init.DatabaseConfig")
    @patch("reqmanager.db.init.Database")
    def test_initialises_without_schema(self, mock_db, mock_config):
        mock_db.is_initialized.return_value = False

        result = init_database(_settings())

        assert result is mock_db.init.return_value
        kwargs = mock_db.init.call_args.kwargs
        assert kwargs["config"] is mock_config.return_value
        assert kwargs["schema_path"] is None
        assert kwargs["auto_setup"] is False
        assert kwargs["interactive"] is False

    @patch("reqmanager.db.init.DatabaseConfig")
    @patch("reqmanager.db.init.Database")
    def test_auto_setup_passes_bundled_schema(self, mock_db, _mock_config):
        mock_db.is_initialized.return_value = False

        init_database(_settings(auto_setup=True))

        kwargs = mock_db.init.call_args.kwargs
        assert kwargs["schema_path"] == SCHEMA_PATH
        assert kwargs["auto_setup"] is True


class TestSchemaHelpers:
    def test_bundled_schema_creates_every_table(self):
        sql = SCHEMA_PATH.read_text(encoding="utf-8")
        for table in TABLES:
            assert f"CREATE TABLE IF NOT EXISTS {table}" in sql

    def test_missing_tables(self):
        db = MagicMock()
        db.fetch_all.return_value = [{"table_name": "certificates"}, {"table_name": "secrets"}]

        assert missing_tables(db) == ["certificate_requests", "events"]

    def test_no_missing_tables(self):
        db = MagicMock()
        db.fetch_all.return_value = [{"table_name": t} for t in TABLES]

        assert missing_tables(db) == []

    def test_apply_schema(self):
        db = MagicMock()

        apply_schema(db)

        assert db.execute.call_args[0][0] == SCHEMA_PATH.read_text(encoding="utf-8")
