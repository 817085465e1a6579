"""Logging configuration for the aitools-auth CLI."""

from __future__ import annotations

import logging
import sys
from pathlib import Path


def setup_logging(
    level: str = "WARNING",
    log_file: Path | None = None,
) -> logging.Logger:
    """
    Configure the ``aitools_auth`` logger.

    Console output goes to stderr so tokens printed on stdout stay pipeable.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path

    Returns:
        Configured logger instance
    """
    console_level = getattr(logging, level.upper())
    logger = logging.getLogger("aitools_auth")
    logger.setLevel(logging.DEBUG if log_file else console_level)

    # Remove existing handlers
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - "
                "%(filename)s:%(lineno)d - %(message)s"
            )
        )
        logger.addHandler(file_handler)

    return logger
