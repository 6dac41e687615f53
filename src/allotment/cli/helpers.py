"""Shared state and utilities for allotment CLI commands.

Global options (--log-level, --log-file, --log-format) are recorded here
by the app callback and merged with the ``logging`` section of the
configuration file when a command configures logging.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

import typer
from rich.console import Console

from allotment.balancer.config import LogConfig
from allotment.core.logging import configure_logging


@dataclass
class CliLoggingConfig:
    """Logging options given on the command line (None = not given)."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None
    file: Path | None = None
    format: Literal["json", "console", "both"] | None = None
    configured: bool = False


_log_config = CliLoggingConfig()


def set_log_level(level: str) -> None:
    _log_config.level = level.upper()  # type: ignore[assignment]


def set_log_file(path: Path | None) -> None:
    _log_config.file = path


def set_log_format(fmt: str) -> None:
    _log_config.format = fmt.lower()  # type: ignore[assignment]


def configure_global_logging(console: Console, defaults: LogConfig | None = None) -> None:
    """Configure logging from CLI options, falling back to ``defaults``.

    Only configures once per session.

    Raises:
        typer.Exit: If logging configuration fails.
    """
    if _log_config.configured:
        return
    defaults = defaults or LogConfig()

    file_path = _log_config.file or defaults.file
    fmt = _log_config.format or defaults.format
    if file_path is not None and fmt == "console":
        fmt = "both"

    try:
        configure_logging(
            level=_log_config.level or defaults.level,
            format=fmt,
            file_path=file_path,
        )
        _log_config.configured = True
    except (ValueError, AttributeError) as e:
        # Bad level names surface as AttributeError from the logging module
        console.print(f"[red]Logging configuration error:[/red] {e}")
        raise typer.Exit(1) from None


def reset_logging_state() -> None:
    """Forget CLI logging options (primarily for testing)."""
    global _log_config
    _log_config = CliLoggingConfig()
