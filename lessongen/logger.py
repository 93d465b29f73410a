"""Logging for lesson generation runs.

Each run writes a full log file under ``config.LOGS_DIR``; only warnings
reach the console, which the CLI shares with its progress bar.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

import config

LOGGER_NAME = "lessongen"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def setup_logger(
    name: str = LOGGER_NAME,
    log_file: str | None = None,
    level: int = logging.INFO,
    logs_dir: Path | None = None,
) -> logging.Logger:
    """
    Configure the run logger with a generation log file and a stderr handler.

    Args:
        name: Logger name
        log_file: File name inside the logs directory; defaults to generation_<timestamp>.log
        level: Level for the logger and its file handler
        logs_dir: Directory for the log file; defaults to config.LOGS_DIR

    Returns:
        Configured logger instance
    """
    logs_dir = logs_dir or config.LOGS_DIR
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = logs_dir / (log_file or f"generation_{datetime.now():%Y%m%d_%H%M%S}.log")

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Reconfiguring replaces handlers instead of stacking them
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(file_handler)

    # stdout belongs to the progress bar
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(max(level, logging.WARNING))
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    logger.addHandler(console_handler)

    logger.info(f"Log file: {log_path}")
    return logger


def get_logger(name: str = LOGGER_NAME) -> logging.Logger:
    """Return the named logger; unconfigured loggers fall back to the root handlers."""
    return logging.getLogger(name)
