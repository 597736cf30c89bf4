"""Structured logging configuration using structlog."""

import logging
import sys
from typing import TextIO

import structlog
from structlog.types import FilteringBoundLogger


def _log_stream(log_file: str | None) -> TextIO:
    if log_file:
        return open(log_file, "a", encoding="utf-8")
    return sys.stderr


def configure_logging(log_file: str | None = None, verbose: bool = False) -> None:
    """Configure structlog for s3du.

    Bucket sizes go to stdout, so log output is kept on stderr unless a
    log file is given.

    Args:
        log_file: Optional path to a JSON log file.
        verbose: If True, enable debug level logging (one event per page).
    """
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if log_file:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if verbose else logging.WARNING
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=_log_stream(log_file)),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> FilteringBoundLogger:
    """Get a logger instance.

    Args:
        name: Logger name, typically __name__ of the calling module.

    Returns:
        Configured structlog logger.
    """
    return structlog.get_logger(name)
