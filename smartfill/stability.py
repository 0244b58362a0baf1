"""
smartfill/stability.py — "Has this file finished being written?" gate.

A file is stable when it still exists and its size is unchanged across one
observation window. The check blocks for the whole window, so callers run it
off their scheduling loop (the coordinator uses a thread pool).
"""
from __future__ import annotations

import os
import time
from typing import Callable, Optional

from .errors import AppError, BAD_CONFIG
from .log import get_logger

logger = get_logger(__name__)

MAX_WINDOW_SECONDS = 30


def _size(path: str) -> Optional[int]:
    try:
        if not os.path.isfile(path):
            return None
        return os.path.getsize(path)
    except OSError:
        return None


class StabilityGate:
    def __init__(self, window_seconds: float, sleep: Callable[[float], None] = time.sleep):
        if not (0 < window_seconds <= MAX_WINDOW_SECONDS):
            raise AppError(
                BAD_CONFIG,
                f"Stability window must be > 0 and <= {MAX_WINDOW_SECONDS} seconds (got {window_seconds})",
            )
        self.window_seconds = window_seconds
        self._sleep = sleep

    def is_stable(self, path: str) -> bool:
        before = _size(path)
        if before is None:
            logger.debug("Not stable, file missing: %s", path)
            return False

        self._sleep(self.window_seconds)

        after = _size(path)
        if after is None:
            logger.debug("Not stable, file vanished during wait: %s", path)
            return False
        if after != before:
            logger.debug("Not stable, size %d -> %d: %s", before, after, path)
            return False
        return True

    def wait_for_stability(self, path: str, max_retries: int) -> bool:
        """Up to max_retries checks; True on the first stable observation."""
        for attempt in range(1, max_retries + 1):
            if self.is_stable(path):
                return True
            if not os.path.exists(path):
                return False
            logger.debug("Stability attempt %d/%d failed for %s", attempt, max_retries, path)
        logger.info("File did not settle after %d checks: %s", max_retries, path)
        return False

    @staticmethod
    def is_readable(path: str) -> bool:
        try:
            with open(path, "rb"):
                return True
        except OSError:
            return False
