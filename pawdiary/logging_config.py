"""Logging setup.

Modules log through structlog (`structlog.get_logger(__name__)`) with
key/value context; this configures rendering and level filtering once
per process.
"""

import logging

import structlog


def configure_logging(level: str = "INFO") -> None:
    """
    Configure structlog for console output.

    Args:
        level: Minimum level name (DEBUG, INFO, WARNING, ...). Unknown
            names fall back to INFO.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        cache_logger_on_first_use=False,
    )
