"""
Logging setup for pg_fixpoint.

Library modules log through logging.getLogger(__name__) and never configure
handlers themselves; the CLI calls setup_logging() once.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler


LOGGER_NAME = "pg_fixpoint"


def setup_logging(level: str = "WARNING", console: Optional[Console] = None) -> logging.Logger:
    """
    Route pg_fixpoint log records to a rich handler on stderr.

    Args:
        level: Log level name (DEBUG, INFO, ...)
        console: Console to log to (defaults to a stderr console)

    Returns:
        The package logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.handlers.clear()

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

    logger.addHandler(handler)
    logger.setLevel(level.upper())
    logger.propagate = False
    return logger
