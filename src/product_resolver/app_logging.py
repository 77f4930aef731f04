"""Logging configuration helpers."""

import logging

_ROOT_LOGGER = "product_resolver"
_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: int | str = logging.INFO) -> None:
    """Attach one stream handler to the package logger.

    Safe to call repeatedly; later calls only adjust the level.
    """
    logger = logging.getLogger(_ROOT_LOGGER)
    logger.setLevel(level)
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False
