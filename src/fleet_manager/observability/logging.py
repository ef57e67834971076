"""structlog setup shared by the CLI and the service entrypoints."""

from __future__ import annotations

import logging
from typing import Any

import structlog


def configure_logging(*, json_output: bool = True, level: str = "INFO") -> None:
    """Configure structlog to render JSON lines, or console output when interactive."""
    logging.basicConfig(format="%(message)s", level=level.upper())
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
    )
