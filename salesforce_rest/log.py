"""
Structured logging setup

The library only calls structlog.get_logger(); applications that want
the standard output format call configure_logging() once at startup.
"""

import logging
import sys
from typing import Optional

import structlog


def configure_logging(json_output: Optional[bool] = None, level: int = logging.INFO):
    """
    Configure structlog on top of the stdlib logging module.

    Args:
        json_output: Render JSON lines; defaults to True when stdout is not a TTY
        level: Minimum level passed through
    """
    if json_output is None:
        json_output = not sys.stdout.isatty()

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

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
            structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
