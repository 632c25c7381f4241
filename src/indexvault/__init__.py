"""IndexVault - Export search cluster indices into replayable archives."""

__version__ = "0.1.0"


def main() -> None:
    """Main entry point for the CLI."""
    from indexvault.cli.main import app

    app()
