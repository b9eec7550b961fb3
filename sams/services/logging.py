"""Logging setup shared by the API server, the import command and penalty jobs.

Records go to stdout and, when a log file is configured, to that file too.
The level comes from LOG_LEVEL (default INFO).
"""

import logging
import os
import sys
from pathlib import Path

LOG_FORMAT = "[%(asctime)s] %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def get_log_level(level_name: str | None = None) -> int:
    """Resolve a level name, falling back to LOG_LEVEL and then INFO.

    Unknown names resolve to INFO.
    """
    name = (level_name or os.getenv("LOG_LEVEL", "INFO")).upper()
    return LOG_LEVEL_MAP.get(name, logging.INFO)


def _handler(handler: logging.Handler, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_server_logging(log_file: str | None = "logs/sams.log", level_name: str | None = None) -> None:
    """
    Configure the root logger.

    Args:
        log_file: Path to the log file, or None for stdout only
        level_name: Level name overriding LOG_LEVEL

    Existing root handlers are replaced, so calling this twice does not
    duplicate output.
    """
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    level = get_log_level(level_name)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(_handler(logging.StreamHandler(sys.stdout), level, formatter))

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        root_logger.addHandler(_handler(logging.FileHandler(log_path), level, formatter))
