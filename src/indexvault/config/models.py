"""Pydantic models for configuration."""

import re
import socket

from pydantic import BaseModel, Field, field_validator

from indexvault.constants import (
    DEFAULT_ARCHIVE_PATH,
    DEFAULT_CLUSTER_TIMEOUT_SECONDS,
    DEFAULT_SCROLL_SIZE,
    DEFAULT_SCROLL_TIMEOUT,
    DEFAULT_WORKERS,
    MAX_SCROLL_SIZE,
    MAX_WORKERS,
)

# Elasticsearch time unit syntax, e.g. "30s", "1m", "500ms"
TIME_VALUE_PATTERN = re.compile(r"^\d+(nanos|micros|ms|s|m|h|d)$")


def validate_time_value(value: str) -> str:
    """Validate a cluster time value such as ``1m``.

    Raises:
        ValueError: If the value is not ``<int><unit>``
    """
    value = value.strip()
    if not TIME_VALUE_PATTERN.match(value):
        raise ValueError(f"invalid time value '{value}' (expected e.g. 30s, 1m, 500ms)")
    return value


class ClusterConfig(BaseModel):
    """Search cluster connection configuration."""

    hosts: list[str] = Field(min_length=1)
    api_key: str | None = None
    username: str | None = None
    password: str | None = None
    timeout: int = Field(default=DEFAULT_CLUSTER_TIMEOUT_SECONDS, ge=5, le=600)
    verify_certs: bool = True


class ExportSettings(BaseModel):
    """Defaults applied to export submissions and the worker pool."""

    workers: int = Field(
        default=DEFAULT_WORKERS,
        ge=1,
        le=MAX_WORKERS,
        description="Number of export jobs that may run concurrently",
    )
    scroll_timeout: str = DEFAULT_SCROLL_TIMEOUT
    scroll_size: int = Field(default=DEFAULT_SCROLL_SIZE, ge=1, le=MAX_SCROLL_SIZE)
    bytes_to_transfer: int = Field(default=0, ge=0)
    default_path: str = DEFAULT_ARCHIVE_PATH
    node_name: str = Field(default_factory=socket.gethostname)
    job_db: str | None = None

    @field_validator("scroll_timeout")
    @classmethod
    def check_scroll_timeout(cls, value: str) -> str:
        return validate_time_value(value)


class Configuration(BaseModel):
    """Complete IndexVault configuration."""

    config_version: str = "1.0"
    cluster: ClusterConfig
    export: ExportSettings = Field(default_factory=ExportSettings)
