"""structlog configuration shared by scripts and applications."""

import logging
import sys

import structlog


def configure_logging(level: str = "INFO", fmt: str = "json"):
    """
    Route structlog through the standard library logging backend.

    Args:
        level: Log level name, e.g. "INFO" or "DEBUG"
        fmt: "json" for machine readable output, "console" for humans
    """
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level.upper(), force=True)

    if fmt == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
