"""Logging setup for callers of the library."""

from __future__ import annotations

import logging

LOGGER_NAME = "nbody_chaos"
_FMT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logger(level: str = "INFO") -> logging.Logger:
    """Attach one stream handler to the package logger and set its level.

    Safe to call repeatedly: later calls only change the level.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_FMT))
    logger.addHandler(handler)
    return logger
