"""
Mira - Logging
===============
Logger factory shared by every Mira module.

Level resolution (first match wins):
  1. ``level`` argument passed to ``get_logger``
  2. ``settings.LOG_LEVEL``
  3. ``settings.ENV``: ``"dev"`` → DEBUG, ``"prod"`` → WARNING

Components prefix their messages with a bracketed tag (``[RAG]``,
``[ROUTER]``, ``[TOOL]``, ``[SESSION]``, ``[INDEX]``) so one request can
be followed through the pipeline with ``grep``.

Usage:
    from mira.src.utils.logger import get_logger
    logger = get_logger(__name__)
    logger.info("[RAG] Reply generated in %.1fms", elapsed_ms)
"""

import logging
import sys

from mira.config.settings import settings

_ENV_LEVELS = {"dev": logging.DEBUG, "prod": logging.WARNING}

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _default_level() -> int:
    if settings.LOG_LEVEL is not None:
        return logging.getLevelName(settings.LOG_LEVEL)
    return _ENV_LEVELS.get(settings.ENV, logging.INFO)


def _stdout_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT))
    return handler


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """
    Return the logger called *name*, attaching a stdout handler on first use.

    Args:
        name:  Usually ``__name__`` of the calling module.
        level: Overrides the settings-derived level.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    resolved = level if level is not None else _default_level()
    logger.setLevel(resolved)
    logger.addHandler(_stdout_handler(resolved))
    # One handler per named logger; the root logger stays untouched.
    logger.propagate = False
    return logger
