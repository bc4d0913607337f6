"""Logger factory shared by the dashboard modules."""

import logging
from typing import Union

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logger(name: str, level: Union[int, str] = logging.INFO) -> logging.Logger:
    """
    Setup a logger with a console handler.

    Calling this again for the same name returns the existing logger
    without stacking handlers.

    Args:
        name: Logger name (usually __name__)
        level: Logging level (int or name such as "INFO")

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    if logger.handlers:
        return logger

    logger.setLevel(level)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(console_handler)

    return logger
