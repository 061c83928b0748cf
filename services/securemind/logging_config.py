"""Structured logging setup.

All modules log through structlog with key/value context. Request IDs bound
by the API middleware are merged in from contextvars.
"""

import logging
import sys
from typing import Any

import structlog


def configure_logging(json_logs: bool = True, log_level: str = "INFO") -> None:
    """Configure structlog and route stdlib logging through the same level."""
    level = logging.getLevelNamesMapping().get(log_level.upper(), logging.INFO)

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_logs:
        renderer: Any = structlog.processors.JSONRenderer()
        shared_processors.append(structlog.processors.format_exc_info)
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(sys.stdout),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    # uvicorn access logs duplicate the request-id middleware
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> Any:
    """Return a structlog logger bound to the given module name."""
    return structlog.get_logger(name)
