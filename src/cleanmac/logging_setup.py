"""Logging configuration for the cleanmac CLI."""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "cleanmac"


def configure_logging(level: str = "INFO", console: Optional[Console] = None) -> logging.Logger:
    """
    Send cleanmac log records to a RichHandler.

    Calling it again only updates the level.

    Args:
        level: Level name, e.g. "DEBUG"; unknown names mean INFO
        console: Console to log to (defaults to stderr)

    Returns:
        The package logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    numeric = logging.getLevelName(level.upper())
    logger.setLevel(numeric if isinstance(numeric, int) else logging.INFO)

    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=False,
            markup=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
        logger.addHandler(handler)
        logger.propagate = False

    return logger
