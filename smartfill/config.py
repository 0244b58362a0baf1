from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional, Set

from .errors import AppError, BAD_CONFIG
from .io import write_json_atomic
from .log import get_logger

logger = get_logger(__name__)


ENV_CONFIG_PATH = "SMARTFILL_CONFIG_PATH"
CONFIG_DIR_NAME = ".smartfill"
CONFIG_FILE_NAME = "running_mode_config.json"
DEFAULT_PATTERN = "*.txt,*.asc"
MIN_INTERVAL = 1
MAX_INTERVAL = 3600


def resolve_config_path(base_dir: Optional[str] = None) -> str:
    """Where run-mode settings live.

    $SMARTFILL_CONFIG_PATH wins when set; a relative value is taken from base_dir
    (or the working directory). Otherwise the file sits in ~/.smartfill/.
    """
    override = os.getenv(ENV_CONFIG_PATH)
    if not override:
        return os.path.join(os.path.expanduser("~"), CONFIG_DIR_NAME, CONFIG_FILE_NAME)
    if os.path.isabs(override):
        return override
    return os.path.join(base_dir or os.getcwd(), override)


def parse_extensions(pattern: str) -> Set[str]:
    """'*.txt, *.ASC' -> {'txt', 'asc'}"""
    out = set()
    for part in (pattern or "").split(","):
        p = part.strip().lower()
        if p.startswith("*."):
            p = p[2:]
        elif p.startswith("."):
            p = p[1:]
        if p and p != "*":
            out.add(p)
    return out


@dataclass
class RunModeConfig:
    """Settings for the unattended single-folder run mode."""
    mapping_file: str = ""
    watch_folder: str = ""
    output_folder: str = ""
    file_pattern: str = DEFAULT_PATTERN
    interval_seconds: int = 1
    append_mode_enabled: bool = True
    last_generated_file_path: Optional[str] = None
    stability_check_seconds: int = 0

    @property
    def extensions(self) -> Set[str]:
        return parse_extensions(self.file_pattern)

    def validate(self) -> None:
        if not (MIN_INTERVAL <= self.interval_seconds <= MAX_INTERVAL):
            raise AppError(
                BAD_CONFIG,
                f"Interval must be between {MIN_INTERVAL} and {MAX_INTERVAL} seconds (got {self.interval_seconds})",
            )
        if not (0 <= self.stability_check_seconds <= 30):
            raise AppError(BAD_CONFIG, "Stability check must be between 0 and 30 seconds")
        if not self.extensions:
            raise AppError(BAD_CONFIG, f"File pattern matches no extensions: {self.file_pattern!r}")

    # ---------- Serialization ----------

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RunModeConfig":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in (data or {}).items() if k in known})

    # ---------- File IO ----------

    def save_json(self, path: Optional[str] = None) -> str:
        target = path or resolve_config_path()
        write_json_atomic(target, self.to_dict())
        return target

    @classmethod
    def load_json(cls, path: str) -> "RunModeConfig":
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls.from_dict(data)

    @classmethod
    def load_or_default(cls, path: Optional[str] = None) -> "RunModeConfig":
        target = path or resolve_config_path()
        if not os.path.exists(target):
            return cls()
        try:
            return cls.load_json(target)
        except (OSError, ValueError, TypeError) as e:
            logger.warning("Could not read run-mode config %s (%s); using defaults", target, e)
            return cls()
