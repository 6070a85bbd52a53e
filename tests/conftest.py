"""
Shared pytest fixtures
"""

import logging

import pytest
import structlog


@pytest.fixture
def restore_logging():
    """Undo root handlers and structlog config installed by setup_logger"""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()
