"""Logging setup shared by the API process and the test suite."""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_HANDLER_NAME = "class_schedules"


def configure_logging(level: str = "INFO") -> None:
    """Attach a single stdout handler to the package logger.

    Calling it again only updates the level.
    """
    package_logger = logging.getLogger("class_schedules")
    package_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if any(h.get_name() == _HANDLER_NAME for h in package_logger.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    package_logger.addHandler(handler)
