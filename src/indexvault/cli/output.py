"""Output formatting utilities for CLI commands."""

import json
from typing import Any

from rich.console import Console
from rich.table import Table

from indexvault.export.models import JobState


def format_json(data: Any) -> str:
    """
    Format data as JSON string.

    Args:
        data: Data to format (must be JSON-serializable)

    Returns:
        Pretty-printed JSON string
    """
    # Convert Pydantic models to dict if needed
    if hasattr(data, "model_dump"):
        data = data.model_dump(mode="json")
    return json.dumps(data, indent=2, default=str)


def format_bytes(num_bytes: float) -> str:
    """Render a byte count with a binary unit suffix."""
    for unit in ("B", "KiB", "MiB", "GiB"):
        if abs(num_bytes) < 1024:
            return f"{num_bytes:.1f} {unit}" if unit != "B" else f"{int(num_bytes)} B"
        num_bytes /= 1024
    return f"{num_bytes:.1f} TiB"


def format_jobs_table(jobs: list[JobState], console: Console | None = None) -> None:
    """
    Print running export jobs as a table.

    Args:
        jobs: Job states to list
        console: Console to print on (new stdout console when None)
    """
    table = Table(title="Running exports", show_header=True, header_style="bold")
    for header in ("Job", "Mode", "Node", "Path", "Started"):
        table.add_column(header)
    for job in jobs:
        table.add_row(
            job.job_id,
            job.mode,
            job.node_name,
            job.path,
            job.timestamp.strftime("%Y-%m-%d %H:%M:%S %Z"),
        )
    (console or Console()).print(table)
