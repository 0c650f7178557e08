import logging

import pytest

from ordercore.infrastructure.logger import LOGGER_NAME


@pytest.fixture(autouse=True)
def _reset_ordercore_logger():
    """Undo configure_logging() so handlers never outlive a test's stdout."""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
