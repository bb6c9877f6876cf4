"""Structured logging setup for the exporter."""
import logging
import sys
from typing import Optional

import structlog

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

def setup_logging(level: str = "WARNING", json_output: Optional[bool] = None) -> structlog.BoundLogger:
    """Configure structlog to write to stderr.

    stdout carries exported data, so diagnostics never go there. Lines are
    rendered as JSON unless stderr is an interactive terminal (or
    ``json_output`` says otherwise).
    """
    log_level = LOG_LEVELS.get(level.upper(), logging.WARNING)
    if json_output is None:
        json_output = not sys.stderr.isatty()

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(component="splunk-export")
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
    return structlog.get_logger()
