"""Centralized logging configuration using structlog."""

import logging
import os
import sys

import structlog
from structlog.typing import Processor

LOG_LEVEL_ENV = "DEPLOY_TUNNEL_LOG_LEVEL"


def setup_logging(
    level: str | None = None,
    json_format: bool = False,
    log_file: str | None = None,
) -> None:
    """Configure structured logging for deploy tunnel.

    Args:
        level: Logging level name. Falls back to $DEPLOY_TUNNEL_LOG_LEVEL, then INFO
        json_format: If True, render events as JSON instead of console output
        log_file: Optional file path that receives a plain-text copy of every record
    """
    level_name = (level or os.environ.get(LOG_LEVEL_ENV) or "INFO").upper()
    log_level = getattr(logging, level_name)

    package_logger = logging.getLogger("deploy_tunnel")
    package_logger.handlers = []
    package_logger.setLevel(log_level)
    package_logger.propagate = False

    # Progress is reported to users via callbacks, so diagnostics go to stderr
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    package_logger.addHandler(console_handler)

    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        package_logger.addHandler(file_handler)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a configured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)  # type: ignore[no-any-return]
