"""
Logging setup for Redirect Sync.

Every module logs through a child of the ``redirect_sync`` logger; the CLI
attaches handlers once per invocation:
- Rich colored console output (default)
- JSON lines, one object per record, carrying the run's ``extra`` fields
  (operation, fingerprint, batch) so checkpoints can be traced afterwards
- Optional rotating log file in the same format
"""

from __future__ import annotations

import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from redirect_sync.config import LoggingConfig


# Log output goes to stderr so progress bars own stdout
console = Console(stderr=True)

logger = logging.getLogger("redirect_sync")

_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime"}

_PLAIN_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class JsonFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Fields passed through ``extra=``
        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and key not in log_data:
                log_data[key] = value

        return json.dumps(log_data, default=str)


def _formatter(format_style: str) -> logging.Formatter:
    if format_style == "json":
        return JsonFormatter()
    return logging.Formatter(_PLAIN_FORMAT, datefmt=_DATE_FORMAT)


def _console_handler(format_style: str) -> logging.Handler:
    if format_style == "rich":
        handler = RichHandler(
            console=console,
            rich_tracebacks=True,
            show_time=True,
            show_path=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        return handler

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_formatter(format_style))
    return handler


def setup_logging(
    level: str = "INFO",
    log_file: Path | str | None = None,
    format_style: str = "rich",
    max_file_size_mb: int = 10,
    backup_count: int = 3,
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to log file
        format_style: "rich", "json", or "simple"; a log file uses JSON
            for "json" and the plain line format otherwise
        max_file_size_mb: Max log file size before rotation
        backup_count: Number of backup files to keep
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(log_level)

    handlers = [_console_handler(format_style)]

    if log_file:
        file_path = Path(log_file)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            file_path,
            maxBytes=max_file_size_mb * 1024 * 1024,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(_formatter(format_style))
        handlers.append(file_handler)

    for handler in handlers:
        handler.setLevel(log_level)
        logger.addHandler(handler)


def configure_from_settings(config: LoggingConfig, level: str | None = None) -> None:
    """Apply a LoggingConfig, optionally forcing the level."""
    setup_logging(
        level=level or config.level,
        log_file=config.file,
        format_style=config.format,
        max_file_size_mb=config.max_file_size_mb,
        backup_count=config.backup_count,
    )
