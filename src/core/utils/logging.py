"""Logging helpers.

One stream handler per named logger, level taken from ``app.settings``.
"""

from __future__ import annotations

import logging
import threading

from app.settings import get_settings

_LOCK = threading.Lock()
_FORMAT = "[cellar] %(asctime)s %(levelname)s %(name)s %(message)s"


def get_logger(name: str = "cellar") -> logging.Logger:
    logger = logging.getLogger(name)
    if getattr(logger, "_cellar_configured", False):
        return logger
    with _LOCK:
        if getattr(logger, "_cellar_configured", False):
            return logger
        level = getattr(logging, get_settings().log_level, logging.INFO)
        logger.setLevel(level)
        if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(_FORMAT))
            logger.addHandler(handler)
        logger.propagate = False
        logger._cellar_configured = True  # type: ignore[attr-defined]
        return logger


__all__ = ["get_logger"]
