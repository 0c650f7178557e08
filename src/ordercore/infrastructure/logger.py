"""Logging configuration for ordercore.

Modules log through ``logging.getLogger(__name__)``; everything under the
``ordercore`` namespace is routed to a single stdout handler installed
here.  The level comes from configuration or the LOG_LEVEL environment
variable (default: INFO).
"""

from __future__ import annotations

import logging
import os
import sys

LOGGER_NAME = "ordercore"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str | None = None) -> logging.Logger:
    """Install the stdout handler on the ``ordercore`` logger.

    Calling it again replaces the previous handler instead of stacking
    another one.
    """
    resolved = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(resolved)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(resolved)
    console_handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(console_handler)

    # Prevent propagation to root logger (avoid duplicate logs)
    logger.propagate = False
    return logger
