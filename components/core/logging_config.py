"""Application-wide logging configuration."""

import logging
from typing import Optional

from components.core.config import get_settings


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Configure the root logger with a console handler.

    Args:
        level: Overrides the LOG_LEVEL setting when given
    """
    settings = get_settings()
    log_level = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Clear existing handlers
    root_logger.handlers = []

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter(settings.LOG_FORMAT))
    root_logger.addHandler(console_handler)

    # Set specific loggers for third-party libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    root_logger.info(f"Logging initialized at {logging.getLevelName(log_level)} level")
    return root_logger
