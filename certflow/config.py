from __future__ import annotations

import logging
import os
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from .errors import ConfigurationInvalid

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class HttpConfig(BaseModel):
    """Settings for provider HTTP clients."""

    timeout: float = 30.0


class CertflowConfig(BaseModel):
    """Top-level configuration model."""

    database_url: Optional[str] = None
    run_database_url: str = "sqlite+aiosqlite:///certflow-runs.db"
    log_level: str = "INFO"
    node_timeout: Optional[float] = Field(
        default=None, description="Per-run deadline in seconds"
    )
    http: HttpConfig = HttpConfig()


def load_config(path: Optional[str] = None) -> CertflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to CERTFLOW_CONFIG env
            variable or 'config.yaml' in the current directory.

    Raises:
        ConfigurationInvalid: If the file is not valid YAML or does not
            match ``CertflowConfig``.
    """

    config_path = path or os.getenv("CERTFLOW_CONFIG", "config.yaml")
    try:
        if os.path.exists(config_path):
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
            config = CertflowConfig.model_validate(data)
        else:
            config = CertflowConfig()
    except (yaml.YAMLError, ValidationError) as e:
        raise ConfigurationInvalid(f"invalid configuration in {config_path}: {e}") from e

    env_db_url = os.getenv("CERTFLOW_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    env_run_db_url = os.getenv("CERTFLOW_RUN_DATABASE_URL")
    if env_run_db_url:
        config.run_database_url = env_run_db_url
    env_log_level = os.getenv("CERTFLOW_LOG_LEVEL")
    if env_log_level:
        config.log_level = env_log_level
    return config


def configure_logging(level: str = "INFO") -> None:
    """Send certflow logs to stderr at ``level``."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    logging.getLogger("certflow").setLevel(level.upper())
