"""Pytest fixtures for allotment tests."""

import logging
from typing import Generator

import pytest
import structlog


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None, None, None]:
    """Reset logging state before and after each test.

    This ensures test isolation for logging configuration.
    """
    from allotment.cli import helpers

    helpers.reset_logging_state()
    structlog.reset_defaults()

    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    original_level = root_logger.level
    for handler in original_handlers:
        root_logger.removeHandler(handler)

    yield

    helpers.reset_logging_state()
    structlog.reset_defaults()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in original_handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(original_level)
