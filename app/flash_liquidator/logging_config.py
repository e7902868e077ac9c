"""
Logging setup shared by every flash liquidator component.

One named logger writes to the console and to ``LOGS_PATH``. Records at
ERROR and above name the module and function they came from and carry the
full traceback of an attached exception.
"""

import logging
import os
import sys
import traceback
from pathlib import Path
from types import TracebackType
from typing import Optional, Type

LOGS_PATH = os.environ.get("LOGS_PATH", "logs/flash_liquidator.log")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG")
LOGGER_NAME = "flash_liquidator"

STANDARD_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
ERROR_FORMAT = "%(asctime)s - %(levelname)s [%(module)s.%(funcName)s] - %(message)s"


class DetailedExceptionFormatter(logging.Formatter):
    """Short lines for routine records, located lines with tracebacks for failures."""

    def __init__(self) -> None:
        super().__init__(STANDARD_FORMAT)
        self._error_formatter = logging.Formatter(ERROR_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno < logging.ERROR:
            return super().format(record)
        if record.exc_info and not record.exc_text:
            record.exc_text = "".join(traceback.format_exception(*record.exc_info)).rstrip("\n")
        return self._error_formatter.format(record)


def setup_logger() -> logging.Logger:
    """
    Return the flash liquidator logger, attaching its handlers on first use.

    Returns:
        Logger writing to stderr and to the file at ``LOGS_PATH``.
    """
    logger = logging.getLogger(LOGGER_NAME)
    if logger.handlers:
        return logger

    logger.setLevel(LOG_LEVEL)
    formatter = DetailedExceptionFormatter()

    Path(LOGS_PATH).parent.mkdir(parents=True, exist_ok=True)
    for handler in (logging.StreamHandler(), logging.FileHandler(LOGS_PATH, mode="a")):
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def global_exception_handler(
    exctype: Type[BaseException], value: BaseException, tb: Optional[TracebackType]
) -> None:
    """
    ``sys.excepthook`` replacement that records uncaught exceptions as CRITICAL.

    Interrupts from the keyboard keep the interpreter's default handling.
    """
    if issubclass(exctype, KeyboardInterrupt):
        sys.__excepthook__(exctype, value, tb)
        return
    setup_logger().critical("Uncaught %s", exctype.__name__, exc_info=(exctype, value, tb))
