"""Console and log handler setup for the IndexVault CLI.

Everything here renders on stderr so that ``--output json`` keeps stdout
machine-readable.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

INDEXVAULT_THEME = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "success": "bold green",
        "dim": "dim",
        "job": "bold magenta",
    }
)

console = Console(theme=INDEXVAULT_THEME, stderr=True)

# Client libraries that log one line per HTTP request at INFO
CHATTY_LOGGERS = ("elastic_transport", "urllib3")


def log_level(verbose: bool = False, debug: bool = False) -> int:
    """Map the CLI verbosity flags to a logging level (warnings only by default)."""
    if debug:
        return logging.DEBUG
    if verbose:
        return logging.INFO
    return logging.WARNING


def configure_rich_logging(verbose: bool = False, debug: bool = False) -> None:
    """Route all log records through a RichHandler on the stderr console.

    Debug mode adds timestamps, source paths and local variables in
    tracebacks. Request logs of the cluster transport are only shown in
    debug mode.

    Args:
        verbose: Show export progress messages (INFO)
        debug: Show everything, including per-request transport logs
    """
    level = log_level(verbose, debug)
    handler = RichHandler(
        console=console,
        show_time=debug,
        show_path=debug,
        enable_link_path=debug,
        rich_tracebacks=True,
        tracebacks_show_locals=debug,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    logging.basicConfig(level=level, handlers=[handler], force=True)

    for name in CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if debug else logging.WARNING)


def _emit(style: str, message: str, console_obj: Console | None) -> None:
    (console_obj or console).print(message, style=style, markup=False, highlight=False)


def print_error(message: str, console_obj: Console | None = None) -> None:
    _emit("error", f"✗ {message}", console_obj)


def print_success(message: str, console_obj: Console | None = None) -> None:
    _emit("success", f"✓ {message}", console_obj)


def print_warning(message: str, console_obj: Console | None = None) -> None:
    _emit("warning", f"⚠ {message}", console_obj)


def print_info(message: str, console_obj: Console | None = None) -> None:
    _emit("info", message, console_obj)
