"""Logging setup for the command line entry point."""

import logging

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(verbose: bool = False) -> logging.Logger:
    """Attach a stream handler to the package logger once.

    Args:
        verbose: Log DEBUG messages instead of WARNING and above

    Returns:
        The ``shopledger`` logger
    """
    logger = logging.getLogger("shopledger")
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    return logger
