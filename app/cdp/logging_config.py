"""
Logging configuration for the CDP client.
"""

import logging
import os
import traceback
from pathlib import Path
from typing import Any

LOGGER_NAME = "cdp_client"
LOGS_PATH = os.environ.get("LOGS_PATH", "logs/cdp_client.log")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG")


class DetailedExceptionFormatter(logging.Formatter):
    """Formatter that keeps full tracebacks for ERROR and above only."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s - %(levelname)s - %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno >= logging.ERROR or not record.exc_info:
            return super().format(record)

        saved = (record.exc_info, record.exc_text)
        record.exc_info, record.exc_text = None, None
        try:
            return super().format(record)
        finally:
            record.exc_info, record.exc_text = saved


def setup_logger() -> logging.Logger:
    """
    Set up and configure the CDP client logger.

    Handlers are attached once; later calls return the same logger.

    Returns:
        Configured logger instance with console and file handlers.
    """
    logger = logging.getLogger(LOGGER_NAME)

    if logger.handlers:
        return logger

    logger.setLevel(LOG_LEVEL.upper())

    console_handler = logging.StreamHandler()
    Path(LOGS_PATH).parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(LOGS_PATH, mode="a")

    formatter = DetailedExceptionFormatter()
    console_handler.setFormatter(formatter)
    file_handler.setFormatter(formatter)

    logger.addHandler(console_handler)
    logger.addHandler(file_handler)

    return logger


def global_exception_handler(exctype: type, value: BaseException, tb: Any) -> None:
    """
    Log uncaught exceptions through the client logger.

    Installed as ``sys.excepthook`` by the application entry point.
    """
    logger = logging.getLogger(LOGGER_NAME)
    trace_str = "".join(traceback.format_exception(exctype, value, tb))
    logger.critical("Uncaught exception:\n %s", trace_str)
