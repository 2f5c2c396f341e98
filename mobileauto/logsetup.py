# mobileauto/logsetup.py
"""
Console and file logging for test runs.
All library loggers live under the "mobileauto" namespace.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

ROOT_LOGGER = "mobileauto"

_initialized: bool = False


class RunLogFormatter(logging.Formatter):
    """Timestamp, level, optional thread (worker) and logger name."""

    def __init__(self, include_thread: bool = True):
        self.include_thread = include_thread
        super().__init__()

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        level = record.levelname.ljust(8)

        if self.include_thread:
            thread = record.threadName[:12].ljust(12)
            prefix = f"[{timestamp}] [{level}] [{thread}] {record.name}: "
        else:
            prefix = f"[{timestamp}] [{level}] {record.name}: "

        message = record.getMessage()
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return prefix + message


def setup_logging(
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    log_file: Optional[Union[str, Path]] = None,
    force: bool = False,
) -> logging.Logger:
    """
    Attach console and (optionally) file handlers to the "mobileauto" logger.

    Args:
        console_level: Level for stdout output
        file_level: Level for the log file
        log_file: Path of the log file; no file handler when None
        force: Replace handlers installed by an earlier call

    Returns:
        The configured root library logger
    """
    global _initialized

    root_logger = logging.getLogger(ROOT_LOGGER)
    if _initialized and not force:
        return root_logger

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()
    root_logger.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(RunLogFormatter(include_thread=False))
    root_logger.addHandler(console_handler)

    if log_file is not None:
        path = Path(log_file)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(path, mode="a", encoding="utf-8")
            file_handler.setLevel(file_level)
            file_handler.setFormatter(RunLogFormatter(include_thread=True))
            root_logger.addHandler(file_handler)
        except OSError as e:
            root_logger.warning(f"Could not create log file: {e}")
        else:
            root_logger.info(f"Logging initialized. Log file: {path}")

    _initialized = True
    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Logger for `name`, placed under the "mobileauto" namespace."""
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
