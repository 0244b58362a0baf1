from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


ROOT_LOGGER = "smartfill"
ENV_LOG_DIR = "SMARTFILL_LOG_DIR"

_CONFIGURED = False


def get_logger(name: str) -> logging.Logger:
    """Return a logger inside the smartfill hierarchy (module __name__ is fine)."""
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def configure_logging(log_dir: Optional[str] = None, level: int = logging.INFO) -> logging.Logger:
    """Attach a rotating file handler (<log_dir>/smartfill.log) and a stdout handler.

    log_dir priority: argument, SMARTFILL_LOG_DIR env var, ~/.smartfill/logs.
    Safe to call more than once; handlers are only attached the first time.
    """
    global _CONFIGURED
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)
    if _CONFIGURED:
        return logger

    base = Path(log_dir or os.getenv(ENV_LOG_DIR) or (Path.home() / ".smartfill" / "logs"))
    base.mkdir(parents=True, exist_ok=True)

    fmt = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    file_handler = RotatingFileHandler(
        base / "smartfill.log", maxBytes=2 * 1024 * 1024, backupCount=3, encoding="utf-8"
    )
    file_handler.setFormatter(fmt)
    logger.addHandler(file_handler)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(fmt)
    logger.addHandler(console)

    logger.propagate = False
    _CONFIGURED = True
    return logger
