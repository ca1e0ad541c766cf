"""
Process-wide logging setup for roadnav.

Console output is colored in development and plain elsewhere. File output
rotates and can be written as JSON lines, one object per record, carrying
the structured fields the graph build and path query timers attach.
"""

import json
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from roadnav.core.config import settings

# Structured fields copied from a record into JSON output when present
NAVIGATION_FIELDS = (
    "operation",
    "query_id",
    "duration_ms",
    "num_nodes",
    "steps_taken",
    "path_cost",
    "error_code",
)

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class JSONFormatter(logging.Formatter):
    """Formats records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        data: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "line": record.lineno,
        }
        for name in NAVIGATION_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                data[name] = value
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)


class ColoredFormatter(logging.Formatter):
    """Console formatter that colors the level name."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        color = self.COLORS.get(levelname)
        if color is None:
            return super().format(record)
        record.levelname = f"{color}{levelname}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


def get_log_level(level_name: str) -> int:
    """
    Logging constant for a level name, INFO when the name is unknown.

    Args:
        level_name: DEBUG, INFO, WARNING, ERROR or CRITICAL, any case
    """
    level = logging.getLevelName(level_name.upper())
    return level if isinstance(level, int) else logging.INFO


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    if settings.environment == "development":
        handler.setFormatter(
            ColoredFormatter("%(levelname)s | %(asctime)s | %(name)s | %(message)s", _DATE_FORMAT)
        )
    else:
        handler.setFormatter(
            logging.Formatter("%(levelname)s - %(asctime)s - %(name)s - %(message)s", _DATE_FORMAT)
        )
    return handler


def _file_handler(log_file: Path, level: int, json_logs: bool) -> logging.Handler:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )
    handler.setLevel(level)
    if json_logs:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(levelname)s - %(name)s:%(lineno)d - %(message)s", _DATE_FORMAT
            )
        )
    return handler


def setup_logging(
    log_level: Optional[str] = None,
    log_file: Optional[Path] = None,
    json_logs: bool = False,
    enable_console: bool = True,
) -> None:
    """
    Replace the root logger's handlers with roadnav's console and file handlers.

    Args:
        log_level: Level name; from settings when omitted, DEBUG in development
        log_file: Rotating log file, no file output when omitted
        json_logs: Write the log file as JSON lines
        enable_console: Log to stdout
    """
    if log_level is None:
        log_level = settings.log_level or (
            "DEBUG" if settings.environment == "development" else "INFO"
        )
    level = get_log_level(log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    if enable_console:
        root_logger.addHandler(_console_handler(level))
    if log_file:
        root_logger.addHandler(_file_handler(log_file, level, json_logs))

    root_logger.info(
        f"Logging initialized: level={log_level}, environment={settings.environment}, "
        f"file={log_file}, json={json_logs}"
    )
