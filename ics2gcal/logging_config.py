"""
Central logging configuration for ics2gcal.

Console output goes to stderr through a colorlog formatter. Verbose debug
output from the HTTP and iCalendar libraries is suppressed unless debug
logging is requested.
"""

import logging
import os
import sys
from typing import Optional

from colorlog import ColoredFormatter

DEBUG_ENV_VAR = "ICS2GCAL_DEBUG"
LOG_LEVEL_ENV_VAR = "ICS2GCAL_LOG_LEVEL"

_TRUTHY = ("1", "true", "yes", "on")

# HH:MM:SS  LEVEL   logger.name: message, with only the level colorized
LOG_FORMAT = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"
LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red",
}

NOISY_LIBRARY_LOGGERS = ("httpx", "httpcore", "asyncio", "icalendar")


def _debug_forced() -> bool:
    return os.environ.get(DEBUG_ENV_VAR, "").strip().lower() in _TRUTHY


def _coerce_level(level_name: Optional[str]) -> int:
    if not isinstance(level_name, str) or not level_name.strip():
        return logging.INFO
    level = logging.getLevelName(level_name.strip().upper())
    return level if isinstance(level, int) else logging.INFO


def init_logging(level_name: Optional[str] = None) -> int:
    """Initialize root logging to stream to the console.

    Level precedence: ``ICS2GCAL_DEBUG`` (truthy forces DEBUG), then
    ``level_name``, then ``ICS2GCAL_LOG_LEVEL``, then INFO. A handler is only
    added when the root logger has none, so calling this twice does not
    duplicate output.

    Args:
        level_name: Level name such as ``"DEBUG"`` or ``"warning"``

    Returns:
        The numeric level applied to the root logger
    """
    if _debug_forced():
        level_name = "DEBUG"
    elif not level_name:
        level_name = os.environ.get(LOG_LEVEL_ENV_VAR)

    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        handler.setFormatter(ColoredFormatter(LOG_FORMAT, datefmt="%H:%M:%S", log_colors=LOG_COLORS))
        root.addHandler(handler)

    level = _coerce_level(level_name)
    root.setLevel(level)
    configure_library_loggers(debug=level <= logging.DEBUG)
    logging.getLogger(__name__).debug("Logging initialized at level %s", logging.getLevelName(level))
    return level


def configure_library_loggers(debug: bool = False) -> None:
    """Quiet third-party loggers; ics2gcal loggers follow ``debug``."""
    for name in NOISY_LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("ics2gcal").setLevel(logging.DEBUG if debug else logging.INFO)
