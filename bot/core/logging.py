from __future__ import annotations

import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from core.config import LoggingConfig

ERROR_LOGGER = logging.getLogger("tickets.errors")

TEXT_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"
TEXT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Library loggers that are too chatty at the root level.
QUIET_LOGGERS = {
    "discord": logging.INFO,
    "discord.http": logging.WARNING,
    "aiohttp": logging.WARNING,
    "uvicorn.access": logging.WARNING,
}


class JsonFormatter(logging.Formatter):
    """Single-line JSON records for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = getattr(record, "context", None)
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=True)


def log_error(context: str, exc: BaseException) -> None:
    """Record a handled failure with its traceback under the shared error logger."""
    ERROR_LOGGER.error(
        "%s failed: %s",
        context,
        exc,
        exc_info=(type(exc), exc, exc.__traceback__),
        extra={"context": context},
    )


def _formatter(as_json: bool) -> logging.Formatter:
    if as_json:
        return JsonFormatter()
    return logging.Formatter(fmt=TEXT_FORMAT, datefmt=TEXT_DATE_FORMAT)


def configure_logging(config: LoggingConfig) -> None:
    directory = Path(config.directory)
    directory.mkdir(parents=True, exist_ok=True)

    console = logging.StreamHandler()
    console.setFormatter(_formatter(config.json_console))

    rotating = RotatingFileHandler(
        directory / config.file_name,
        maxBytes=config.max_bytes,
        backupCount=config.backup_count,
        encoding="utf-8",
    )
    rotating.setFormatter(_formatter(False))

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.getLevelNamesMapping().get(config.level.upper(), logging.INFO))
    for handler in (console, rotating):
        root.addHandler(handler)

    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)
