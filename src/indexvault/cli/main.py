"""Main Typer application for IndexVault CLI."""

from pathlib import Path
from typing import Annotated

import typer

from indexvault import __version__

app = typer.Typer(
    help="IndexVault - Export search cluster indices into replayable archives",
    add_completion=False,
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"IndexVault version {__version__}")
        raise typer.Exit(0)


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = False,
) -> None:
    """IndexVault CLI main callback."""
    pass


@app.command()
def check(
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to configuration file"),
    ] = None,
    output: Annotated[
        str,
        typer.Option("--output", "-o", help='Output format: "table" or "json"'),
    ] = "table",
) -> None:
    """Check that the configured cluster is reachable."""
    from .commands import check as check_module

    check_module.run(config, output)


@app.command()
def export(
    index: Annotated[
        str,
        typer.Option(
            "--index",
            "-i",
            help="Comma-separated index names or patterns (default: _all)",
        ),
    ] = "_all",
    type_: Annotated[
        str,
        typer.Option("--type", "-t", help="Comma-separated type names (default: all types)"),
    ] = "",
    path: Annotated[
        str | None,
        typer.Option(
            "--path",
            "-p",
            help="Target archive (.tar.gz, .tar, .zip, .bulk, .bulk.gz, .ndjson, ...)",
        ),
    ] = None,
    overwrite: Annotated[
        bool,
        typer.Option("--overwrite", help="Replace an existing archive"),
    ] = False,
    encode_entries: Annotated[
        bool,
        typer.Option("--encode-entries", help="Percent-encode archive entry names"),
    ] = False,
    with_metadata: Annotated[
        bool,
        typer.Option("--with-metadata/--no-metadata", help="Export settings and mappings"),
    ] = True,
    with_aliases: Annotated[
        bool,
        typer.Option("--with-aliases/--no-aliases", help="Export index aliases"),
    ] = True,
    bytes_to_transfer: Annotated[
        int | None,
        typer.Option("--bytes-to-transfer", min=0, help="Expected archive size for progress"),
    ] = None,
    scroll_timeout: Annotated[
        str | None,
        typer.Option("--scroll-timeout", help="Scroll keep-alive, e.g. 1m or 30s"),
    ] = None,
    scroll_size: Annotated[
        int | None,
        typer.Option("--scroll-size", min=1, help="Documents per scroll page"),
    ] = None,
    query: Annotated[
        str | None,
        typer.Option("--query", "-q", help="Raw search body as JSON"),
    ] = None,
    index_type: Annotated[
        list[str] | None,
        typer.Option(
            "--index-type",
            help="Extra 'index' or 'index/type' whose metadata to export (repeatable)",
        ),
    ] = None,
    rename: Annotated[
        list[str] | None,
        typer.Option(
            "--rename",
            help="Export under another name: 'source=target' or 'idx/type=idx/newtype' "
            "(repeatable)",
        ),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to configuration file"),
    ] = None,
    output: Annotated[
        str,
        typer.Option("--output", "-o", help='Output format: "table" or "json"'),
    ] = "table",
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging"),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Enable debug logging"),
    ] = False,
) -> None:
    """Export indices, their metadata and documents into an archive."""
    from .commands import export as export_module

    export_module.run(
        config=config,
        output=output,
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
        index_types=index_type,
        rename=rename,
        verbose=verbose,
        debug=debug,
    )


@app.command()
def jobs(
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to configuration file"),
    ] = None,
    output: Annotated[
        str,
        typer.Option("--output", "-o", help='Output format: "table" or "json"'),
    ] = "table",
) -> None:
    """List running exports recorded in the job database."""
    from .commands import jobs as jobs_module

    jobs_module.run(config, output)


if __name__ == "__main__":
    app()
