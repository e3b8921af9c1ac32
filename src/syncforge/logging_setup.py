"""
Logging setup for syncforge.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from .config import LoggingConfig


def setup_logging(config: Optional[LoggingConfig] = None, debug: bool = False) -> logging.Logger:
    """
    Configure the ``syncforge`` logger from a LoggingConfig.

    Calling this again replaces the handlers installed by the previous call.
    """
    config = config or LoggingConfig()
    logger = logging.getLogger("syncforge")
    logger.setLevel(logging.DEBUG if debug else getattr(logging, config.level))

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(config.format)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if config.file:
        Path(config.file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            config.file,
            maxBytes=config.max_size,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
