"""Structured logging configuration for inkpress."""

from __future__ import annotations

import logging
import sys

ROOT_LOGGER = "inkpress"


def setup_logging(
    level: int = logging.INFO,
    module_name: str = ROOT_LOGGER,
) -> logging.Logger:
    """Configure and return a logger with consistent formatting.

    Module loggers are created under the ``inkpress`` namespace so the CLI
    can raise or lower verbosity for all of them at once.

    Args:
        level: Logging level (default INFO).
        module_name: Name for the logger instance.

    Returns:
        Configured logger.
    """
    if module_name != ROOT_LOGGER and not module_name.startswith(ROOT_LOGGER + "."):
        module_name = f"{ROOT_LOGGER}.{module_name}"

    logger = logging.getLogger(module_name)

    if logger.handlers:
        return logger

    logger.setLevel(level)
    logger.propagate = False

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.NOTSET)

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    return logger


def set_level(level: int) -> None:
    """Set the level on every logger in the inkpress namespace."""
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level)
    for name, logger in logging.Logger.manager.loggerDict.items():
        if isinstance(logger, logging.Logger) and name.startswith(ROOT_LOGGER + "."):
            logger.setLevel(level)
