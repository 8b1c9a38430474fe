"""Configuration management for GuildFlow."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

DEFAULT_API_BASE_URL = "http://localhost:3000"
DEFAULT_LOG_LEVEL = "INFO"

_ENV_REFERENCE = re.compile(r"^\$\{([A-Za-z_][A-Za-z0-9_]*)\}$")
_IN_MEMORY = {"", "none", "memory", ":memory:"}


class ConfigError(Exception):
    """Error loading or accessing configuration."""


def config_dir() -> Path:
    """Get the GuildFlow configuration directory."""
    return Path.home() / ".guildflow"


def get_guildflow_config(path: Path | None = None) -> dict[str, Any]:
    """Load the GuildFlow configuration file.

    Args:
        path: Config file path (defaults to ~/.guildflow/config.yaml).

    Returns:
        Configuration dictionary, empty if file doesn't exist.
    """
    config_path = path or config_dir() / "config.yaml"
    if not config_path.exists():
        return {}

    try:
        with open(config_path) as f:
            config = yaml.safe_load(f)
            return config if isinstance(config, dict) else {}
    except (yaml.YAMLError, OSError):
        return {}


def _is_placeholder(value: str | None) -> bool:
    return value is None or "your_" in value


def _resolve_reference(value: str | None) -> str | None:
    """Resolve a ${VAR} reference from the environment."""
    if value is None:
        return None
    match = _ENV_REFERENCE.match(value)
    if match:
        return os.environ.get(match.group(1))
    return value


def _first(*candidates: Any) -> str | None:
    for candidate in candidates:
        if candidate is None:
            continue
        value = str(candidate)
        if not _is_placeholder(value):
            return value
    return None


@dataclass
class Settings:
    """Runtime settings for the trigger service."""

    api_base_url: str = DEFAULT_API_BASE_URL
    database_url: str | None = None  # None runs in memory
    webhook_secret: str | None = None
    log_level: str = DEFAULT_LOG_LEVEL

    @property
    def persistent(self) -> bool:
        """Whether schedules and triggers are stored in a database."""
        return self.database_url is not None

    @classmethod
    def load(
        cls,
        api_base_url: str | None = None,
        database_url: str | None = None,
        webhook_secret: str | None = None,
        log_level: str | None = None,
        config_path: Path | None = None,
    ) -> Settings:
        """Resolve settings from arguments, environment and config file.

        Checks in order of priority:
        1. Explicit arguments
        2. GUILDFLOW_* environment variables (API_BASE_URL for the endpoint)
        3. GuildFlow config file (~/.guildflow/config.yaml)
        4. Defaults

        Raises:
            ConfigError: If the log level is not a logging level name.
        """
        file_config = get_guildflow_config(config_path)
        api_config = file_config.get("api") or {}
        db_config = file_config.get("database") or {}
        webhook_config = file_config.get("webhooks") or {}

        base_url = _first(
            api_base_url,
            os.environ.get("GUILDFLOW_API_BASE_URL"),
            os.environ.get("API_BASE_URL"),
            api_config.get("base_url"),
        )

        db_url = _first(
            database_url,
            os.environ.get("GUILDFLOW_DATABASE_URL"),
            db_config.get("url"),
        )
        if db_url is not None and db_url.strip().lower() in _IN_MEMORY:
            db_url = None

        secret = _resolve_reference(
            _first(
                webhook_secret,
                os.environ.get("GUILDFLOW_WEBHOOK_SECRET"),
                webhook_config.get("secret"),
            )
        )

        level = (
            _first(log_level, os.environ.get("GUILDFLOW_LOG_LEVEL"), file_config.get("log_level"))
            or DEFAULT_LOG_LEVEL
        ).upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ConfigError(f"Unknown log level: {level}")

        return cls(
            api_base_url=(base_url or DEFAULT_API_BASE_URL).rstrip("/"),
            database_url=db_url,
            webhook_secret=secret or None,
            log_level=level,
        )
