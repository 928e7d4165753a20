"""Application-level logging utilities.

Level selection, strongest first:
    SUPPORTBOT_LOG_LEVEL   level name (DEBUG, INFO, WARNING, ...)
    DEBUG_SUPPORTBOT=true  shorthand for DEBUG
    otherwise              INFO
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional


def level_from_env() -> int:
    """Resolve the package log level from the environment."""
    name = os.getenv("SUPPORTBOT_LOG_LEVEL", "").strip().upper()
    if name:
        level = logging.getLevelName(name)
        if isinstance(level, int):
            return level
    if os.getenv("DEBUG_SUPPORTBOT", "false").lower() == "true":
        return logging.DEBUG
    return logging.INFO


def setup_logger(name: str = "supportbot", level: Optional[int] = None) -> logging.Logger:
    """Return the package logger writing ``time [LEVEL] name: message`` lines to stdout."""
    if level is None:
        level = level_from_env()

    logger = logging.getLogger(name)

    # Re-running setup (reloads, tests) must not stack handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(handler)

    logger.setLevel(level)
    logger.propagate = False

    return logger


LOGGER: logging.Logger = setup_logger()

__all__ = ["LOGGER", "setup_logger", "level_from_env"]
