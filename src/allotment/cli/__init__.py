"""allotment CLI.

Built with Typer. The app callback records the global logging options;
commands configure logging once they know the configuration file's
``logging`` section, with command-line options taking precedence.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from allotment import __version__

from . import helpers as helpers
from .commands import run
from .helpers import set_log_file, set_log_format, set_log_level
from .output import console

app = typer.Typer(
    name="allotment",
    help="Weighted-fair admission control for a concurrency-limited service",
    add_completion=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"allotment v{__version__}")
        raise typer.Exit()


def log_level_callback(value: str | None) -> str | None:
    if value:
        set_log_level(value)
    return value


def log_file_callback(value: Path | None) -> Path | None:
    if value:
        set_log_file(value)
    return value


def log_format_callback(value: str | None) -> str | None:
    if value:
        set_log_format(value)
    return value


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            "-L",
            callback=log_level_callback,
            help="Logging level (DEBUG, INFO, WARNING, ERROR)",
            envvar="ALLOTMENT_LOG_LEVEL",
        ),
    ] = None,
    log_file: Annotated[
        Path | None,
        typer.Option(
            "--log-file",
            callback=log_file_callback,
            help="Path for log file output",
            envvar="ALLOTMENT_LOG_FILE",
        ),
    ] = None,
    log_format: Annotated[
        str | None,
        typer.Option(
            "--log-format",
            callback=log_format_callback,
            help="Log format: json, console, or both",
            envvar="ALLOTMENT_LOG_FORMAT",
        ),
    ] = None,
) -> None:
    """allotment - weighted-fair admission control."""


app.command()(run)


__all__ = ["app"]
