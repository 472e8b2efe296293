"""Structured logging configuration for afkwarden.

This module configures structlog with support for:
- Plain operator lines (``[HH:MM:SS] message key=value``), console and JSON output
- An append-only rotating log file mirrored to the console

The logging system integrates structlog with Python's stdlib logging
for handlers (file rotation, console mirror), while using structlog
exclusively for actual log emission. Writing a log entry never raises:
stdlib handlers report their own I/O errors to stderr and carry on.

Example usage:
    >>> from afkwarden.config import LoggingConfig
    >>> from afkwarden.logging import setup_logging, get_logger
    >>>
    >>> setup_logging(LoggingConfig(level="INFO", format="plain", file=Path("bot.log")))
    >>> get_logger(__name__).info("Logged in", identity="afkbot_x7Qa91Lm")
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from typing import Any

import structlog

from afkwarden.config import LoggingConfig

# Keys that the plain renderer folds into the line prefix instead of key=value pairs
_PLAIN_RESERVED = ("timestamp", "event", "level", "logger")


def render_plain(logger: Any, method_name: str, event_dict: dict[str, Any]) -> str:
    """Render an event as ``[localtime] message key=value ...``.

    Args:
        logger: Logger instance (unused, required by structlog protocol)
        method_name: Log method name (unused, required by structlog protocol)
        event_dict: Event dictionary to render

    Returns:
        Single rendered log line
    """
    timestamp = event_dict.get("timestamp", "")
    message = str(event_dict.get("event", ""))
    extras = [
        f"{key}={value}"
        for key, value in event_dict.items()
        if key not in _PLAIN_RESERVED and value is not None
    ]
    line = f"[{timestamp}] {message}"
    if extras:
        line = f"{line} {' '.join(extras)}"
    return line


def _build_handlers(config: LoggingConfig) -> list[logging.Handler]:
    """Create the console mirror and, when configured, the log file handler."""
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if config.file is not None:
        try:
            config.file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(
                logging.handlers.RotatingFileHandler(
                    filename=config.file,
                    mode="a",
                    maxBytes=config.rotation_size_mb * 1024 * 1024,
                    backupCount=config.retention_count,
                    encoding="utf-8",
                )
            )
        except OSError as exc:
            print(
                f"afkwarden: cannot open log file {config.file}: {exc}; logging to console only",
                file=sys.stderr,
            )

    return handlers


def setup_logging(config: LoggingConfig) -> None:
    """Configure structlog with the given configuration.

    This function sets up the complete logging pipeline including:
    - Plain, console or JSON rendering based on config.format
    - Console mirror plus append-only file with rotation if config.file is set
    - Timestamp, log level, and logger name processors
    - Context variables bound through structlog.contextvars

    Args:
        config: Logging configuration from WardenConfig
    """
    log_level = getattr(logging, config.level)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    for handler in _build_handlers(config):
        handler.setLevel(log_level)
        root_logger.addHandler(handler)

    if config.format == "json":
        renderer: Any = structlog.processors.JSONRenderer()
        timestamper = structlog.processors.TimeStamper(fmt="iso")
    elif config.format == "console":
        renderer = structlog.dev.ConsoleRenderer()
        timestamper = structlog.processors.TimeStamper(fmt="%H:%M:%S", utc=False)
    else:  # plain
        renderer = render_plain
        timestamper = structlog.processors.TimeStamper(fmt="%H:%M:%S", utc=False)

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            timestamper,
            structlog.contextvars.merge_contextvars,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Configured structlog BoundLogger instance
    """
    return structlog.get_logger(name)
