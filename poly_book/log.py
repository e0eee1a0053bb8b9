"""
Logging setup.

The dashboard owns the terminal, so log records go to a rotating file
instead of stdout/stderr.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def setup_logging(log_file: Path, level: int | str = logging.INFO) -> Path:
    """Route the package logger to ``log_file``. Returns the resolved path."""
    log_file = Path(log_file).expanduser()
    log_file.parent.mkdir(parents=True, exist_ok=True)

    handler = RotatingFileHandler(log_file, maxBytes=2_000_000, backupCount=3, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    logger = logging.getLogger("poly_book")
    logger.setLevel(level)
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.propagate = False

    # aiohttp's own warnings are useful when the feed misbehaves
    logging.getLogger("aiohttp").addHandler(handler)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)

    return log_file
