"""
Logging setup for the converter service.

Every module logs through `logging.getLogger(__name__)`; this module only
wires the package logger to a console handler.
"""
import logging

PACKAGE_LOGGER = "converter_api"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: int | str = logging.INFO) -> logging.Logger:
    """Attach a single console handler to the package logger.

    Args:
        level: logging level name or number

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)

    # Clear handlers so repeated startups do not duplicate output
    if logger.handlers:
        logger.handlers.clear()

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)
    return logger
