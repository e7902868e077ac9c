"""
Tests for the logging setup.
"""

import logging
import sys

from app.flash_liquidator.logging_config import LOGGER_NAME, DetailedExceptionFormatter, setup_logger


def make_record(level, exc_info=None):
    return logging.LogRecord(LOGGER_NAME, level, __file__, 1, "liquidation %s", ("aborted",), exc_info)


def test_setup_logger_is_idempotent():
    logger = setup_logger()
    handlers = list(logger.handlers)
    assert setup_logger() is logger
    assert logger.handlers == handlers


def test_error_records_carry_module_and_traceback():
    try:
        raise ValueError("boom")
    except ValueError:
        record = make_record(logging.ERROR, sys.exc_info())

    output = DetailedExceptionFormatter().format(record)
    assert "[test_logging_config." in output
    assert output.count("ValueError: boom") == 1


def test_info_records_are_plain():
    output = DetailedExceptionFormatter().format(make_record(logging.INFO))
    assert output.endswith("INFO - liquidation aborted")
