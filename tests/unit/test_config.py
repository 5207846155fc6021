"""Tests for configuration loading."""

import logging

import pytest

from certflow.config import configure_logging, load_config
from certflow.errors import ConfigurationInvalid
from certflow.persistence import SQLiteWorkflowOutputRepository, get_repositories


def test_load_config_from_env(tmp_path, monkeypatch):
    monkeypatch.delenv("CERTFLOW_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
database_url: sqlite:///tmp/outputs.db
log_level: DEBUG
node_timeout: 120
http:
  timeout: 5
"""
    )
    monkeypatch.setenv("CERTFLOW_CONFIG", str(config_path))

    config = load_config()
    assert config.database_url == "sqlite:///tmp/outputs.db"
    assert config.log_level == "DEBUG"
    assert config.node_timeout == 120
    assert config.http.timeout == 5


def test_env_overrides_file(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("log_level: DEBUG\n")
    monkeypatch.setenv("CERTFLOW_CONFIG", str(config_path))
    monkeypatch.setenv("CERTFLOW_LOG_LEVEL", "WARNING")
    monkeypatch.setenv("CERTFLOW_RUN_DATABASE_URL", "sqlite+aiosqlite:///runs.db")

    config = load_config()
    assert config.log_level == "WARNING"
    assert config.run_database_url == "sqlite+aiosqlite:///runs.db"


def test_defaults_without_file(tmp_path, monkeypatch):
    monkeypatch.delenv("CERTFLOW_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("CERTFLOW_LOG_LEVEL", raising=False)
    config = load_config(str(tmp_path / "missing.yaml"))
    assert config.database_url is None
    assert config.log_level == "INFO"
    assert config.http.timeout == 30.0


def test_get_repositories_uses_config(tmp_path, monkeypatch):
    monkeypatch.delenv("CERTFLOW_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    config_path = tmp_path / "config.yaml"
    config_path.write_text(f"database_url: sqlite://{tmp_path / 'outputs.db'}\n")
    monkeypatch.setenv("CERTFLOW_CONFIG", str(config_path))

    repos = get_repositories()
    assert isinstance(repos.outputs, SQLiteWorkflowOutputRepository)


def test_invalid_config_raises_configuration_invalid(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("http:\n  timeout: soon\n")
    with pytest.raises(ConfigurationInvalid):
        load_config(str(config_path))

    config_path.write_text("log_level: [unclosed\n")
    with pytest.raises(ConfigurationInvalid):
        load_config(str(config_path))


def test_configure_logging_sets_package_level():
    configure_logging("debug")
    assert logging.getLogger("certflow").level == logging.DEBUG
    configure_logging("INFO")
    assert logging.getLogger("certflow").level == logging.INFO
    logging.getLogger("certflow").setLevel(logging.NOTSET)
