"""
Logging setup for Gloaming.

Everything below WARNING goes to stdout, WARNING and above to stderr, so a
systemd unit or container runtime can tell routine ticks from failures.
LOG_LEVEL sets the threshold.
"""

import logging
import sys
from typing import Optional, TextIO

from gloaming.config import LOG_LEVEL

LOGGER_NAME = "gloaming"

# "2025-01-15 14:30:45 - gloaming - INFO - Cycle disabled"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class MaxLevelFilter(logging.Filter):
    """Drop records above max_level."""

    def __init__(self, max_level: int):
        super().__init__()
        self.max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno <= self.max_level


def _stream_handler(stream: TextIO, min_level: int, max_level: Optional[int] = None) -> logging.Handler:
    handler = logging.StreamHandler(stream)
    handler.setLevel(min_level)
    if max_level is not None:
        handler.addFilter(MaxLevelFilter(max_level))
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logging(level: str = LOG_LEVEL) -> logging.Logger:
    """
    Configure the gloaming logger. Safe to call more than once.

    Returns:
        The configured "gloaming" logger
    """
    log = logging.getLogger(LOGGER_NAME)
    log.setLevel(level)

    # uvicorn configures the root logger too; don't print every line twice
    log.propagate = False

    log.handlers.clear()
    log.addHandler(_stream_handler(sys.stdout, logging.DEBUG, max_level=logging.INFO))
    log.addHandler(_stream_handler(sys.stderr, logging.WARNING))

    return log


logger = setup_logging()
