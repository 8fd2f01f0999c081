"""Logging configuration for the ``pygeotherm`` namespace."""

from __future__ import annotations

import logging
import sys


def setup_logging(level: int = logging.INFO, log_file: str | None = None) -> logging.Logger:
    """Configure the package logger.

    Args:
        level: Logging level (e.g. ``logging.DEBUG``).
        log_file: Optional path; when given, records are also written there.

    Returns:
        The configured ``pygeotherm`` logger.
    """
    logger = logging.getLogger("pygeotherm")
    logger.setLevel(level)

    # Reconfiguring must not duplicate records
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.info("Logging initialized.")
    return logger
