"""Check command implementation."""

from pathlib import Path

import typer

from indexvault.cli.output import format_json
from indexvault.cli.rich_logging import print_error, print_success
from indexvault.cluster.client import ElasticsearchClusterClient
from indexvault.config.loader import load_config
from indexvault.exceptions import ClusterQueryError, ConfigError


def run(config: Path | None = None, output: str = "table") -> None:
    """Connect to the configured cluster and report its identity."""
    try:
        cfg = load_config(config)
    except ConfigError as e:
        print_error(f"Configuration error: {e}")
        raise typer.Exit(2) from None

    client = ElasticsearchClusterClient(cfg.cluster, max_retries=1)
    try:
        info = client.ping()
    except ClusterQueryError as e:
        if output == "json":
            typer.echo(format_json({"connected": False, "error": str(e)}))
        else:
            print_error(f"Cannot reach cluster: {e}")
        raise typer.Exit(3) from None

    version = info.get("version", {}).get("number", "unknown")
    name = info.get("cluster_name", "unknown")
    if output == "json":
        typer.echo(format_json({"connected": True, "cluster_name": name, "version": version}))
    else:
        print_success(f"Connected to cluster '{name}' (version {version})")
