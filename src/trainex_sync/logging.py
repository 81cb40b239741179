"""Structured logging configuration using structlog.

Provides JSON output for production and human-readable console output for development.
All logging throughout the project should use get_logger() instead of print().
"""

import logging
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import structlog

from trainex_sync.discovery import REDACTED_VALUE, is_token_param, redact_url

SYNC_LOG_FILENAME = "trainex-sync.log"

# Keys whose values never reach a renderer.
_SECRET_KEY_PARTS: tuple[str, ...] = ("password", "passwd", "secret", "cookie", "cftoken")

REDACTED = REDACTED_VALUE


def redact_secrets(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Mask secrets: values of secret-looking keys (password, cookies, session
    token names) and session-token values inside string values such as URLs.
    """
    for key, value in list(event_dict.items()):
        if any(part in key.lower() for part in _SECRET_KEY_PARTS) or is_token_param(key):
            event_dict[key] = REDACTED
        elif isinstance(value, str):
            event_dict[key] = redact_url(value)
    return event_dict


def setup_logging(json_output: bool = False, log_level: str = "INFO") -> None:
    """Configure structlog with appropriate processors and output format.

    Args:
        json_output: If True, output JSON (production). If False, console format (dev).
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    # Convert string log level to logging constant
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    processors = [
        structlog.contextvars.merge_contextvars,
        redact_secrets,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    # stderr keeps stdout clean for exported calendar data
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # Bridge stdlib logging (playwright, asyncio) to the same stream
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=numeric_level,
    )
    logging.getLogger().handlers = []
    logging.getLogger().addHandler(logging.StreamHandler(sys.stderr))


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a logger instance bound with the module name.

    Args:
        name: Logger name (typically __name__ from calling module).

    Returns:
        Configured structlog logger with module name context.
    """
    return structlog.get_logger(name)


def create_sync_logger(
    log_dir: str | Path,
) -> tuple[Callable[[str, dict[str, Any] | None], None], Path]:
    """Build a file-backed diagnostic callback for sync runs.

    Each call appends one JSON line (timestamp, event, data) to
    ``<log_dir>/trainex-sync.log``. The returned callable matches the
    ``log(event, data)`` diagnostic hook of ``sync_schedule``.

    Args:
        log_dir: Directory for the log file; created if missing.

    Returns:
        Tuple of (log callback, path of the log file).
    """
    log_path = Path(log_dir) / SYNC_LOG_FILENAME
    log_path.parent.mkdir(parents=True, exist_ok=True)

    def _log(event: str, data: dict[str, Any] | None = None) -> None:
        with log_path.open("a", encoding="utf-8") as fh:
            file_logger = structlog.wrap_logger(
                structlog.WriteLogger(fh),
                wrapper_class=structlog.BoundLogger,
                processors=[
                    redact_secrets,
                    structlog.processors.TimeStamper(fmt="iso", utc=True),
                    structlog.processors.JSONRenderer(ensure_ascii=False),
                ],
            )
            file_logger.msg(event, **(data or {}))

    return _log, log_path
