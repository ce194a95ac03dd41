"""Logging setup.

Every module logs through ``logging.getLogger(__name__)`` under the
``localchat`` namespace. Nothing is printed unless the host application
calls ``configure_logging``.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "localchat"


# Names accepted by parse_level; anything else maps to DEBUG.
LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def parse_level(level: str | int) -> int:
    """Numeric logging level for a name such as ``"info"`` or a number."""
    if isinstance(level, int):
        return level
    return LEVELS.get(level.strip().lower(), logging.DEBUG)


def configure_logging(level: str | int = "warning", console: Console | None = None) -> logging.Logger:
    """Route ``localchat`` logs to a Rich handler.

    Calling it again replaces the handler installed by the previous call.

    Args:
        level: Level name (debug/info/warning/error) or numeric level
        console: Rich console to write to (default: stderr)

    Returns:
        The configured ``localchat`` logger
    """
    numeric = parse_level(level)

    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, "_localchat", False):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        log_time_format="%H:%M:%S",
    )
    handler._localchat = True  # type: ignore[attr-defined]
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(numeric)
    return logger
