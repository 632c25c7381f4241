"""Configuration loading with environment variable merging."""

import os
import tomllib
from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError

from indexvault.config.models import Configuration
from indexvault.exceptions import ConfigError


def get_config_path(config_arg: Path | None = None) -> Path:
    """
    Get configuration file path with priority order.

    Priority:
    1. Command-line argument
    2. INDEXVAULT_CONFIG environment variable
    3. <app dir>/config.toml (user config directory)
    4. ./indexvault.toml (current working directory)

    Args:
        config_arg: Optional path from command-line argument

    Returns:
        Path to configuration file (may not exist)
    """
    if config_arg:
        return config_arg

    env_config = os.getenv("INDEXVAULT_CONFIG")
    if env_config:
        return Path(env_config)

    user_config = Path(typer.get_app_dir("indexvault")) / "config.toml"
    if user_config.exists():
        return user_config

    cwd_config = Path("indexvault.toml")
    if cwd_config.exists():
        return cwd_config

    # Default (may not exist)
    return user_config


def _env_int(name: str) -> int | None:
    """Read an integer environment variable, raising ConfigError if malformed."""
    raw = os.getenv(name)
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"Invalid {name} value: {raw}") from None


def _apply_env_overrides(data: dict[str, Any]) -> None:
    """Merge INDEXVAULT_* environment variables into raw config data in place."""
    cluster = data.setdefault("cluster", {})
    export = data.setdefault("export", {})

    if hosts := os.getenv("INDEXVAULT_HOSTS"):
        cluster["hosts"] = [host.strip() for host in hosts.split(",") if host.strip()]
    if api_key := os.getenv("INDEXVAULT_API_KEY"):
        cluster["api_key"] = api_key
    if username := os.getenv("INDEXVAULT_USERNAME"):
        cluster["username"] = username
    if password := os.getenv("INDEXVAULT_PASSWORD"):
        cluster["password"] = password
    if (timeout := _env_int("INDEXVAULT_TIMEOUT")) is not None:
        cluster["timeout"] = timeout
    if job_db := os.getenv("INDEXVAULT_JOB_DB"):
        export["job_db"] = job_db


def load_config(config_path: Path | None = None) -> Configuration:
    """
    Load and validate configuration from TOML file and environment variables.

    Environment variables override config file values (or provide all values if no file exists):
    - INDEXVAULT_HOSTS (comma-separated cluster URLs)
    - INDEXVAULT_API_KEY
    - INDEXVAULT_USERNAME / INDEXVAULT_PASSWORD
    - INDEXVAULT_TIMEOUT (optional, default: 120 seconds)
    - INDEXVAULT_JOB_DB (optional SQLite path for persisted job state)

    Args:
        config_path: Optional path to config file

    Returns:
        Validated Configuration object

    Raises:
        ConfigError: If config file invalid or required values missing
    """
    path = get_config_path(config_path)

    data: dict[str, Any] = {}
    if path.exists():
        try:
            with path.open("rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML syntax in {path}: {e}") from e

    if not data and not os.getenv("INDEXVAULT_HOSTS"):
        raise ConfigError(
            "No config file found and INDEXVAULT_HOSTS environment variable not set. "
            "Either create a config file or set INDEXVAULT_HOSTS "
            "(plus INDEXVAULT_API_KEY or INDEXVAULT_USERNAME/INDEXVAULT_PASSWORD)"
        )

    _apply_env_overrides(data)

    try:
        return Configuration(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
