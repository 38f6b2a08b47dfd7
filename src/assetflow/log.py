from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path


LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"

_configured = False


def _ensure_base_logger() -> None:
    global _configured
    if _configured:
        return
    level = os.getenv("ASSETFLOW_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
    _configured = True


def set_level(level: str | int) -> None:
    """Override the level picked from ASSETFLOW_LOG_LEVEL (used by --debug)."""
    _ensure_base_logger()
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logging.getLogger("assetflow").setLevel(level)


def get_logger(name: str, log_file: Path | None = None) -> logging.Logger:
    _ensure_base_logger()
    if not name.startswith("assetflow"):
        name = f"assetflow.{name}"
    logger = logging.getLogger(name)
    # Do not duplicate handlers if already set
    if log_file and not any(isinstance(h, RotatingFileHandler) for h in logger.handlers):
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=3)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    return logger
