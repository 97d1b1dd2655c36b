"""Logging setup shared by the API and the command line tools."""

import logging
import sys
from typing import Optional, TextIO

import structlog


def configure_logging(level: str = "INFO", fmt: str = "json", stream: Optional[TextIO] = None) -> None:
    """
    Configure structlog on top of the standard library logger.

    Args:
        level: Name of the minimum level to emit (e.g. "INFO", "DEBUG")
        fmt: "json" for machine-readable lines, anything else for console output
        stream: Where log lines are written (stdout by default)
    """
    logging.basicConfig(
        format="%(message)s",
        stream=stream or sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
        force=True,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if fmt == "json"
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
