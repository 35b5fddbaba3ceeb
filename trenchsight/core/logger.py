"""Logging Configuration

Provides centralized logging setup with automatic log rotation.
Features:
- Time-based rotation (daily)
- Size-based rotation (10MB)
- Console and file outputs
- Consistent formatting
"""

import logging
import sys
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler

from .config import settings


def get_logger(name: str = "trenchsight") -> logging.Logger:
    """Configure and return a logger instance with rotation support.

    Args:
        name: Logger identifier, defaults to "trenchsight"

    Returns:
        logging.Logger: Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(settings.LOG_LEVEL)
    # Prevent duplicate emission via root/uvicorn loggers.
    logger.propagate = False

    # Add handlers (with deduplication)
    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        "[%(asctime)s] [%(levelname)s] [%(name)s]: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(settings.LOG_LEVEL)

    size_handler = RotatingFileHandler(
        settings.log_dir_path / "trenchsight.log",
        maxBytes=10_000_000,  # 10MB
        backupCount=5,
    )
    size_handler.setFormatter(formatter)
    size_handler.setLevel(settings.LOG_LEVEL)

    time_handler = TimedRotatingFileHandler(
        settings.log_dir_path / "trenchsight_daily.log",
        when="midnight",
        interval=1,
        backupCount=30,  # Keep 30 days of logs
    )
    time_handler.setFormatter(formatter)
    time_handler.setLevel(settings.LOG_LEVEL)

    logger.addHandler(console_handler)
    logger.addHandler(size_handler)
    logger.addHandler(time_handler)

    return logger
