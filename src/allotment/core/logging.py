"""Structured logging infrastructure for allotment.

Provides structured logging using structlog with allotment-specific context
such as run_id, job_id and round_num. Supports console and JSON output,
optionally to a rotating log file.

Example usage:
    from allotment.core.logging import get_logger, configure_logging, with_context

    # Configure once at startup
    configure_logging(level="DEBUG", format="console")

    # Get a component-specific logger
    logger = get_logger("balancer")

    # Log with auto-context
    logger.info("round_dispatched", tokens=12)

    # Bind context for a scope
    job_logger = logger.bind(job_id="a1b2c3d4")
    job_logger.debug("job.completed")

    # Use execution context for automatic correlation
    ctx = ExecutionContext(run_id="abc-123")
    with with_context(ctx):
        logger.info("simulation.started")  # Automatically includes run_id
"""

from __future__ import annotations

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

# Global state for log file path tracking (for the CLI summary)
_current_log_path: Path | None = None


def get_current_log_path() -> Path | None:
    """Get the currently configured log file path.

    Returns:
        The Path to the current log file, or None if file logging is not enabled.
    """
    return _current_log_path


@dataclass(frozen=True)
class ExecutionContext:
    """Immutable context for correlating log entries across a run.

    Attributes:
        run_id: Unique identifier of one balancer/simulation run.
        job_id: Identifier of the job being served (None outside a job).
        round_num: Decision-loop round number (None outside a round).
        component: Component name for the current operation.
    """

    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    job_id: str | None = None
    round_num: int | None = None
    component: str = "unknown"

    def with_job(self, job_id: str) -> ExecutionContext:
        """Create a new context with the specified job id."""
        return replace(self, job_id=job_id)

    def with_round(self, round_num: int) -> ExecutionContext:
        """Create a new context with the specified round number."""
        return replace(self, round_num=round_num)

    def with_component(self, component: str) -> ExecutionContext:
        """Create a new context with the specified component."""
        return replace(self, component=component)

    def to_dict(self) -> dict[str, Any]:
        """Convert context to a dictionary for logging.

        Returns:
            Dictionary with all context fields (excludes None values).
        """
        result: dict[str, Any] = {
            "run_id": self.run_id,
            "component": self.component,
        }
        if self.job_id is not None:
            result["job_id"] = self.job_id
        if self.round_num is not None:
            result["round_num"] = self.round_num
        return result


# Task-safe context variable; every asyncio task gets a copy on creation
_current_context: ContextVar[ExecutionContext | None] = ContextVar(
    "allotment_context", default=None
)


def get_current_context() -> ExecutionContext | None:
    """Get the current ExecutionContext if set."""
    return _current_context.get()


def set_context(ctx: ExecutionContext) -> None:
    """Set the current ExecutionContext.

    Generally prefer using `with_context()` for automatic cleanup.
    """
    _current_context.set(ctx)


def clear_context() -> None:
    """Clear the current ExecutionContext."""
    _current_context.set(None)


@contextmanager
def with_context(ctx: ExecutionContext) -> Iterator[ExecutionContext]:
    """Context manager that sets ExecutionContext for the duration of a block.

    All log calls within the block will automatically include the context
    fields (run_id, job_id, round_num) when the _add_context processor is
    active. Tasks spawned inside the block inherit the context.

    Args:
        ctx: The ExecutionContext to use for the block.

    Yields:
        The ExecutionContext that was set.
    """
    token = _current_context.set(ctx)
    try:
        yield ctx
    finally:
        _current_context.reset(token)


def _add_timestamp(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that adds ISO8601 UTC timestamp."""
    event_dict["timestamp"] = datetime.now(UTC).isoformat()
    return event_dict


def _add_context(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that adds ExecutionContext fields to log entries.

    Fields from the context are only added if they are not already present
    in the event dict (explicit bindings take precedence).
    """
    ctx = get_current_context()
    if ctx is not None:
        for key, value in ctx.to_dict().items():
            if key not in event_dict:
                event_dict[key] = value
    return event_dict


class AllotmentLogger:
    """Component logger wrapper around structlog.

    The logger is bound to a component name and can have additional context
    bound for a specific scope (e.g., job_id).

    Note: the underlying structlog logger is fetched lazily on every call so
    that loggers created at module import time still respect configuration
    set later via configure_logging().
    """

    def __init__(
        self,
        component: str,
        **initial_context: Any,
    ) -> None:
        self._component = component
        self._context: dict[str, Any] = {"component": component, **initial_context}

    def _get_logger(self) -> structlog.stdlib.BoundLogger:
        logger: structlog.stdlib.BoundLogger = structlog.get_logger().bind(**self._context)
        return logger

    def bind(self, **context: Any) -> AllotmentLogger:
        """Create a new logger with additional bound context."""
        new_logger = AllotmentLogger.__new__(AllotmentLogger)
        new_logger._component = self._component
        new_logger._context = {**self._context, **context}
        return new_logger

    def debug(self, event: str, **kw: Any) -> None:
        self._get_logger().debug(event, **kw)

    def info(self, event: str, **kw: Any) -> None:
        self._get_logger().info(event, **kw)

    def warning(self, event: str, **kw: Any) -> None:
        self._get_logger().warning(event, **kw)

    def error(self, event: str, **kw: Any) -> None:
        self._get_logger().error(event, **kw)

    def critical(self, event: str, **kw: Any) -> None:
        self._get_logger().critical(event, **kw)

    def exception(self, event: str, **kw: Any) -> None:
        """Log an exception with traceback.

        Should be called from within an exception handler.
        """
        self._get_logger().exception(event, **kw)


def _get_processors(
    renderer: Processor,
    include_timestamps: bool,
    include_context: bool,
) -> list[Processor]:
    """Build the structlog processor chain ending in ``renderer``."""
    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,  # Filter before processing
        structlog.stdlib.add_log_level,
    ]

    if include_context:
        processors.append(_add_context)

    if include_timestamps:
        processors.append(_add_timestamp)

    processors.extend([
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        renderer,
    ])
    return processors


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO",
    format: Literal["json", "console", "both"] = "console",  # noqa: A002
    file_path: Path | None = None,
    max_file_size_mb: int = 50,
    backup_count: int = 5,
    include_timestamps: bool = True,
    include_context: bool = True,
) -> None:
    """Configure allotment structured logging.

    This should be called once at application startup before any logging occurs.

    Args:
        level: Minimum log level to capture.
        format: Output format - "json" for structured, "console" for human-readable,
            "both" for console to stderr and JSON to file (requires file_path).
        file_path: Optional file path for log output. Required if format="both".
        max_file_size_mb: Maximum log file size before rotation (MB).
        backup_count: Number of rotated log files to keep.
        include_timestamps: Whether to include ISO8601 timestamps in log entries.
        include_context: Whether to include ExecutionContext fields in log entries.

    Raises:
        ValueError: If format="both" but file_path is not provided.
    """
    global _current_log_path

    if format == "both" and file_path is None:
        raise ValueError("file_path is required when format='both'")

    log_level = getattr(logging, level)
    handlers: list[logging.Handler] = []

    if format in ("console", "both"):
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(log_level)
        handlers.append(console_handler)

    if format in ("json", "both"):
        if file_path:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            _current_log_path = file_path

            file_handler = RotatingFileHandler(
                file_path,
                maxBytes=max_file_size_mb * 1024 * 1024,
                backupCount=backup_count,
                encoding="utf-8",
            )
            file_handler.setLevel(log_level)
            handlers.append(file_handler)
        else:
            # JSON to stdout if no file specified
            json_handler = logging.StreamHandler(sys.stdout)
            json_handler.setLevel(log_level)
            handlers.append(json_handler)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in handlers:
        root_logger.addHandler(handler)

    renderer: Processor
    if format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    # cache_logger_on_first_use=False so module-level loggers pick up
    # configuration applied after import
    structlog.configure(
        processors=_get_processors(renderer, include_timestamps, include_context),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(component: str, **initial_context: Any) -> AllotmentLogger:
    """Get an allotment logger for a component.

    Args:
        component: The component name (e.g., "balancer", "job", "simulation").
        **initial_context: Additional context to bind.

    Returns:
        An AllotmentLogger instance bound to the component.
    """
    return AllotmentLogger(component, **initial_context)


__all__ = [
    "AllotmentLogger",
    "ExecutionContext",
    "clear_context",
    "configure_logging",
    "get_current_context",
    "get_current_log_path",
    "get_logger",
    "set_context",
    "with_context",
]
