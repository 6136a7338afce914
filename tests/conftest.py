"""Pytest configuration and fixtures."""

import logging

import pytest

from verity.context import RunContext


@pytest.fixture(autouse=True)
def cleanup_loggers():
    """Clean up verity loggers after each test to prevent name collisions."""
    yield

    # Remove all verity loggers from registry
    loggers_to_remove = [
        name
        for name in logging.Logger.manager.loggerDict.keys()
        if name.startswith("verity")
    ]

    for name in loggers_to_remove:
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            handler.close()
        logger.handlers.clear()
        del logging.Logger.manager.loggerDict[name]


@pytest.fixture
def ctx():
    """Fresh top-level run context."""
    return RunContext("example")

