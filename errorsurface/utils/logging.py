"""Structured logging setup: structlog front end, rotating file on the stdlib root logger."""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import TextIO

import structlog

LOG_FILE_NAME = "error-surface.log"


def setup_logging(
    debug: bool = False,
    log_dir: str | None = "logs",
    log_max_bytes: int = 10_000_000,
    log_backup_count: int = 5,
    stream: TextIO | None = None,
) -> None:
    """Configure structlog and the stdlib root logger.

    structlog renders each event to a single line and hands it to the stdlib
    logger of the same name, so both the stream and the rotating file see it.
    ``stream`` defaults to stdout. The CLI passes stderr so that its JSON
    summaries on stdout stay machine-readable. ``log_dir=None`` disables the
    rotating file.
    """
    log_level = logging.DEBUG if debug else logging.INFO
    stream = stream or sys.stdout

    renderer = structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    formatter = logging.Formatter("%(message)s")
    stream_handler = logging.StreamHandler(stream)
    stream_handler.setLevel(log_level)
    stream_handler.setFormatter(formatter)
    root_logger.addHandler(stream_handler)

    # sqlalchemy echoes every statement at INFO; keep it at WARNING unless debugging
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if debug else logging.WARNING)

    if not log_dir:
        return
    try:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, LOG_FILE_NAME),
            maxBytes=log_max_bytes,
            backupCount=log_backup_count,
            encoding="utf-8",
        )
    except OSError:
        # Read-only or missing log location: keep the stream handler only
        return
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a named structured logger."""
    return structlog.get_logger(name)
