"""Logging setup: rich console output plus an optional debug log file."""

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "cbackup"
FILE_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    console: Optional[Console] = None,
) -> logging.Logger:
    """Route the cbackup logger to the console and, if given, to log_file.
    
    The file always receives debug records, whatever the console level.
    """
    console_level = logging.getLevelName(level.upper())
    
    logger = logging.getLogger(LOGGER_NAME)
    logger.handlers.clear()
    logger.propagate = False
    logger.setLevel(logging.DEBUG if log_file else console_level)
    
    handler = RichHandler(
        console=console or Console(stderr=True),
        level=console_level,
        show_time=False,
        show_path=console_level == logging.DEBUG,
        markup=True,
        rich_tracebacks=True,
    )
    logger.addHandler(handler)
    
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)
    
    return logger


def get_logger(name: str = LOGGER_NAME) -> logging.Logger:
    return logging.getLogger(name)
