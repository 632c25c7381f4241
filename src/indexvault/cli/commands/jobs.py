"""Jobs command implementation."""

from pathlib import Path

import typer

from indexvault.cli.output import format_jobs_table, format_json
from indexvault.cli.rich_logging import print_error, print_info
from indexvault.config.loader import load_config
from indexvault.exceptions import ConfigError, RegistryError
from indexvault.storage.job_store import SQLiteJobStore


def run(config: Path | None = None, output: str = "table") -> None:
    """List exports recorded as running in the configured job database."""
    try:
        cfg = load_config(config)
    except ConfigError as e:
        print_error(f"Configuration error: {e}")
        raise typer.Exit(2) from None

    if not cfg.export.job_db:
        print_error("No job database configured (set export.job_db or INDEXVAULT_JOB_DB)")
        raise typer.Exit(2)

    try:
        running = SQLiteJobStore(cfg.export.job_db).list_running()
    except RegistryError as e:
        print_error(str(e))
        raise typer.Exit(1) from None

    if output == "json":
        typer.echo(format_json([job.to_dict() for job in running]))
    elif running:
        format_jobs_table(running)
    else:
        print_info("No exports running")
