"""Request, response and job-state models for export jobs."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from indexvault.config.models import validate_time_value
from indexvault.constants import (
    ALL_INDICES,
    DEFAULT_SCROLL_SIZE,
    DEFAULT_SCROLL_TIMEOUT,
    MAX_SCROLL_SIZE,
)

EXPORT_MODE = "export"


def has_empty_segment(name: str) -> bool:
    """True when an 'index' or 'index/type' name has a blank part."""
    return any(not part.strip() for part in name.split("/"))


class ExportRequest(BaseModel):
    """Options of one export submission.

    Examples:
        >>> # Everything, with metadata, into the default archive
        >>> request = ExportRequest()

        >>> # Two indices under new names, bulk stream without metadata
        >>> request = ExportRequest(
        ...     index="logs-1,logs-2",
        ...     path="logs.bulk.gz",
        ...     rename={"logs-1": "archive-1", "logs-2": "archive-2"},
        ... )
    """

    index: str = ALL_INDICES
    type: str = ""
    path: str | None = None
    overwrite: bool = False
    encode_entry: bool = False
    with_metadata: bool = True
    with_aliases: bool = True
    bytes_to_transfer: int = Field(default=0, ge=0, description="Advisory byte budget")
    timeout: str = Field(default=DEFAULT_SCROLL_TIMEOUT, description="Scroll keep-alive")
    scroll_size: int = Field(default=DEFAULT_SCROLL_SIZE, ge=1, le=MAX_SCROLL_SIZE)
    query: dict[str, Any] | None = Field(default=None, description="Raw search body")
    index_types: list[str] | None = Field(
        default=None, description="Explicit 'index' or 'index/type' tokens for metadata"
    )
    rename: dict[str, str] = Field(
        default_factory=dict, description="'index' or 'index/type' -> destination name"
    )

    @field_validator("timeout")
    @classmethod
    def check_timeout(cls, value: str) -> str:
        return validate_time_value(value)

    @field_validator("rename")
    @classmethod
    def check_rename(cls, value: dict[str, str]) -> dict[str, str]:
        for source, target in value.items():
            if has_empty_segment(source) or has_empty_segment(target):
                raise ValueError(f"rename '{source}={target}' has an empty index or type name")
        return value

    def map_index(self, index: str) -> str:
        """Return the destination name for a source index."""
        target = self.rename.get(index)
        if not target:
            return index
        return target.split("/", 1)[0]

    def map_type(self, index: str, type_name: str) -> str:
        """Return the destination name for a source ``index/type``."""
        target = self.rename.get(f"{index}/{type_name}")
        if not target:
            return type_name
        return target.rsplit("/", 1)[-1]


@dataclass(eq=False)
class JobState:
    """State of one running export job.

    Equality and hashing are by identity: two jobs writing the same path at
    the same instant are still different jobs.
    """

    path: str
    node_name: str
    mode: str = EXPORT_MODE
    job_id: str = field(default_factory=lambda: uuid4().hex)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-safe snapshot."""
        return {
            "job_id": self.job_id,
            "mode": self.mode,
            "node_name": self.node_name,
            "path": self.path,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "JobState":
        return cls(
            path=data["path"],
            node_name=data["node_name"],
            mode=data.get("mode", EXPORT_MODE),
            job_id=data["job_id"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )

    def __str__(self) -> str:
        return f"[{self.mode} {self.job_id[:8]} node={self.node_name} path={self.path}]"


class ExportResponse(BaseModel):
    """Synchronous answer to an export submission."""

    running: bool
    reason: str | None = None
    state: dict[str, Any] | None = None
