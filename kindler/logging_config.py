"""Logging configuration for Kindler.

Console output goes through Rich on stderr so it never mixes with the
CLI listing on stdout; everything down to DEBUG, including the worker
thread name, also lands in a rotating `kindler.log`.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme


LOG_FILE_NAME = "kindler.log"
LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5

_logging_initialized = False


def _file_handler(log_dir: Path) -> RotatingFileHandler:
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_dir / LOG_FILE_NAME,
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUPS,
        encoding="utf-8",
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(levelname)-8s - %(threadName)s - %(name)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    return handler


def _console_handler(level: int) -> RichHandler:
    console = Console(theme=Theme({"logging.level.info": "bold cyan"}), stderr=True)
    handler = RichHandler(
        console=console,
        rich_tracebacks=True,
        show_time=False,
        show_path=False,
    )
    handler.setLevel(level)
    return handler


def setup_logging(log_dir: Path, log_level: str = "INFO") -> None:
    """Install the file and console handlers once per process.

    Args:
        log_dir: Folder for kindler.log (the config DATA_DIR)
        log_level: Console level (DEBUG, INFO, WARNING, ERROR)
    """
    global _logging_initialized

    if _logging_initialized:
        return

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(_file_handler(log_dir))
    root_logger.addHandler(_console_handler(numeric_level))

    _logging_initialized = True


def get_logger(name: str) -> logging.Logger:
    """Get a logger for the specified module."""
    return logging.getLogger(name)
