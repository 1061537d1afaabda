from __future__ import annotations

import logging
import os
import sys

from .config import LOG_LEVEL_ENV

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_HANDLER_NAME = "project_forecast"


def setup_logging(level: str | None = None) -> logging.Logger:
    """
    Route the package's log records to stderr.

    Level comes from ``level``, else the environment, else INFO. Calling this
    again only updates the level; it never stacks handlers.
    """

    level_name = (level or os.environ.get(LOG_LEVEL_ENV, "INFO")).upper()
    numeric = getattr(logging, level_name, None)
    if not isinstance(numeric, int):
        numeric = logging.INFO
        level_name = "INFO"

    logger = logging.getLogger("project_forecast")
    logger.setLevel(numeric)

    handler = next((h for h in logger.handlers if h.get_name() == _HANDLER_NAME), None)
    if handler is None:
        handler = logging.StreamHandler(sys.stderr)
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        logger.addHandler(handler)
    handler.setLevel(numeric)

    logger.debug("Logging initialized at %s", level_name)
    return logger
