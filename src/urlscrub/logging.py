"""structlog wiring for urlscrub: JSON lines on disk, console output on stdout."""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog

from urlscrub.redaction import Redactor

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5

# Request-per-line chatter at INFO
QUIET_LOGGERS = ("httpx", "httpcore")


def _attach(handler: logging.Handler, level: int | str, renderer: Any) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(processor=renderer))
    return handler


def _event_processors(redactor: Redactor | None) -> list:
    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    # Masking runs before the exception and render steps
    if redactor is not None:
        processors.append(redactor.processor)
    return processors + [
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]


def setup_logging(
    log_dir: str,
    log_name: str = "urlscrub",
    *,
    level: str = "INFO",
    redactor: Redactor | None = None,
) -> structlog.stdlib.BoundLogger:
    """Route structlog through stdlib logging into ``<log_dir>/<log_name>.log``.

    The file always receives DEBUG as JSON lines; stdout gets the console
    renderer at *level*. Calling it again replaces the root handlers.
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    file_handler = RotatingFileHandler(
        log_path / f"{log_name}.log",
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
    )
    handlers = [
        _attach(file_handler, logging.DEBUG, structlog.processors.JSONRenderer()),
        _attach(logging.StreamHandler(sys.stdout), level.upper(), structlog.dev.ConsoleRenderer()),
    ]

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    for old in root_logger.handlers[:]:
        root_logger.removeHandler(old)
        old.close()
    for handler in handlers:
        root_logger.addHandler(handler)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=_event_processors(redactor),
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    return structlog.get_logger(log_name)
