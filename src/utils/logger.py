"""
Logging utilities for validator set simulations
"""

import logging
import sys
from pathlib import Path
from typing import Any, Optional

import structlog


def setup_logger(
    name: str = "valset",
    level: str = "INFO",
    log_file: Optional[str] = None,
    structured: bool = True
) -> Any:
    """
    Setup logging for a simulation run

    Library modules log through the standard logging module; this configures
    the handlers those records end up in, and optionally routes structlog
    events through the same handlers as JSON.

    Args:
        name: Logger name
        level: Logging level
        log_file: Optional log file path
        structured: Render structlog events as JSON

    Returns:
        Configured logger
    """
    log_level = getattr(logging, level.upper())

    root = logging.getLogger()
    root.setLevel(log_level)

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    if structured:
        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.stdlib.PositionalArgumentsFormatter(),
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.UnicodeDecoder(),
                structlog.processors.JSONRenderer(sort_keys=True)
            ],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        return structlog.get_logger(name)

    return logging.getLogger(name)


def get_logger(name: str, **context: Any) -> Any:
    """Get a structlog logger, bound to the given context"""
    logger = structlog.get_logger(name)
    if context:
        logger = logger.bind(**context)
    return logger
