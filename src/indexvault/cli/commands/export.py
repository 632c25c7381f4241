"""Export command implementation."""

import json
import logging
from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError

from indexvault.cli.output import format_bytes, format_json
from indexvault.cli.rich_logging import (
    configure_rich_logging,
    console,
    print_error,
    print_info,
    print_success,
    print_warning,
)
from indexvault.cluster.client import ElasticsearchClusterClient
from indexvault.config.loader import load_config
from indexvault.config.models import Configuration
from indexvault.exceptions import ConfigError, RegistryError
from indexvault.export.models import ExportRequest, has_empty_segment
from indexvault.export.orchestrator import ExportOrchestrator, ExportSummary
from indexvault.export.progress import JsonProgressTracker, RichProgressTracker

logger = logging.getLogger(__name__)


def parse_rename(pairs: list[str] | None) -> dict[str, str]:
    """Parse repeated ``source=target`` options into a rename table.

    Raises:
        typer.BadParameter: If a pair has no '=' or an empty index or type name
    """
    table: dict[str, str] = {}
    for pair in pairs or []:
        source, sep, target = pair.partition("=")
        if not sep or has_empty_segment(source) or has_empty_segment(target):
            raise typer.BadParameter(
                f"expected 'source=target', got '{pair}'", param_hint="--rename"
            )
        table[source.strip()] = target.strip()
    return table


def parse_query(query: str | None) -> dict[str, Any] | None:
    """Parse the raw search body option.

    Raises:
        typer.BadParameter: If the text is not a JSON object
    """
    if not query:
        return None
    try:
        body = json.loads(query)
    except json.JSONDecodeError as e:
        raise typer.BadParameter(f"invalid JSON: {e}", param_hint="--query") from e
    if not isinstance(body, dict):
        raise typer.BadParameter("search body must be a JSON object", param_hint="--query")
    return body


def build_request(
    cfg: Configuration,
    *,
    index: str,
    type_: str,
    path: str | None,
    overwrite: bool,
    encode_entries: bool,
    with_metadata: bool,
    with_aliases: bool,
    bytes_to_transfer: int | None,
    scroll_timeout: str | None,
    scroll_size: int | None,
    query: str | None,
    index_types: list[str] | None,
    rename: list[str] | None,
) -> ExportRequest:
    """Build an ExportRequest from CLI options, falling back to config defaults."""
    return ExportRequest(
        index=index,
        type=type_,
        path=path or cfg.export.default_path,
        overwrite=overwrite,
        encode_entry=encode_entries,
        with_metadata=with_metadata,
        with_aliases=with_aliases,
        bytes_to_transfer=(
            bytes_to_transfer if bytes_to_transfer is not None else cfg.export.bytes_to_transfer
        ),
        timeout=scroll_timeout or cfg.export.scroll_timeout,
        scroll_size=scroll_size or cfg.export.scroll_size,
        query=parse_query(query),
        index_types=index_types or None,
        rename=parse_rename(rename),
    )


def run(
    config: Path | None = None,
    output: str = "table",
    index: str = "_all",
    type_: str = "",
    path: str | None = None,
    overwrite: bool = False,
    encode_entries: bool = False,
    with_metadata: bool = True,
    with_aliases: bool = True,
    bytes_to_transfer: int | None = None,
    scroll_timeout: str | None = None,
    scroll_size: int | None = None,
    query: str | None = None,
    index_types: list[str] | None = None,
    rename: list[str] | None = None,
    verbose: bool = False,
    debug: bool = False,
) -> None:
    """Submit an export job and wait for it to finish.

    Ctrl-C requests cooperative cancellation; the archive is still closed
    before the command exits.
    """
    configure_rich_logging(verbose=verbose, debug=debug)

    try:
        cfg = load_config(config)
        request = build_request(
            cfg,
            index=index,
            type_=type_,
            path=path,
            overwrite=overwrite,
            encode_entries=encode_entries,
            with_metadata=with_metadata,
            with_aliases=with_aliases,
            bytes_to_transfer=bytes_to_transfer,
            scroll_timeout=scroll_timeout,
            scroll_size=scroll_size,
            query=query,
            index_types=index_types,
            rename=rename,
        )
        client = ElasticsearchClusterClient(cfg.cluster)
        progress = JsonProgressTracker() if output == "json" else RichProgressTracker()
        orchestrator = ExportOrchestrator.from_config(cfg, client, progress=progress)
    except ConfigError as e:
        print_error(f"Configuration error: {e}")
        raise typer.Exit(2) from None
    except ValidationError as e:
        print_error(f"Invalid export options: {e}")
        raise typer.Exit(2) from None
    except typer.BadParameter as e:
        print_error(e.format_message())
        raise typer.Exit(2) from None
    except RegistryError as e:
        print_error(f"Job database error: {e}")
        raise typer.Exit(2) from None

    with progress, orchestrator:
        response = orchestrator.submit(request)
        if not response.running or response.state is None:
            if output == "json":
                typer.echo(format_json(response))
            else:
                print_error(f"Export rejected: {response.reason}")
            raise typer.Exit(1)

        job_id = response.state["job_id"]
        if output == "json":
            typer.echo(format_json(response))
        else:
            print_info(f"Export {job_id} running: {response.state['path']}")

        try:
            summary = orchestrator.wait(job_id)
        except KeyboardInterrupt:
            orchestrator.cancel(job_id)
            print_warning("Cancelling export, closing archive...")
            summary = orchestrator.wait(job_id)

    _report(summary, output)


def _report(summary: ExportSummary | None, output: str) -> None:
    """Print the final summary and set the exit code."""
    if summary is None:
        print_error("Export finished without a summary")
        raise typer.Exit(1)

    if output == "json":
        typer.echo(
            format_json(
                {
                    "job_id": summary.job_id,
                    "packets": summary.packets,
                    "metadata_packets": summary.metadata_packets,
                    "documents": summary.documents,
                    "total_bytes": summary.total_bytes,
                    "byte_rate": summary.byte_rate,
                    "cancelled": summary.cancelled,
                    "error": summary.error,
                }
            )
        )
    elif summary.succeeded:
        message = (
            f"{summary.documents} documents, {summary.packets} packets, "
            f"{format_bytes(summary.total_bytes)} "
            f"({format_bytes(summary.byte_rate)}/s)"
        )
        if summary.cancelled:
            print_warning(f"Export cancelled: {message}")
        else:
            print_success(f"Export complete: {message}")
    else:
        print_error(f"Export failed after {summary.packets} packets: {summary.error}")
        console.print("Run with --debug for the full traceback", style="dim")

    if not summary.succeeded:
        raise typer.Exit(1)
