"""Logging setup for booxsync."""

import logging
import sys

LOGGER_NAME = 'booxsync'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

logger = logging.getLogger(LOGGER_NAME)
# Silent unless the CLI configures a handler
logger.addHandler(logging.NullHandler())

http_logger = logger.getChild('http')
diff_logger = logger.getChild('diff')


def setup_logging(debug: bool = False) -> None:
    """Attach a stderr handler to the package logger.

    Args:
        debug: Log at DEBUG level instead of WARNING
    """
    level = logging.DEBUG if debug else logging.WARNING
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    for existing in list(logger.handlers):
        if not isinstance(existing, logging.NullHandler):
            logger.removeHandler(existing)
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.debug("debug mode enabled")
