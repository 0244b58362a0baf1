"""
smartfill/batch.py — Multi-source batch pipeline.

Responsible for:
  - Driving one ProcessingJob through PENDING -> PROCESSING -> COMPLETED | FAILED
  - Parsing every slot file of the batch
  - Merging into <output_root>/<mapping name>/Merge_<key>_<YYYYMMDD_HHMMSS>.xlsx
  - Archiving output and inputs into <output_root>/<mapping name>/<timestamp>/
  - Emitting optional progress callbacks

process_batch never raises: every failure ends in a FAILED job carrying the
error message.
"""
from __future__ import annotations

import os
import re
from datetime import datetime
from typing import Any, Callable, Mapping, Optional

from .archive import ArchiveManager, archive_root
from .errors import AppError, BAD_CONFIG
from .log import get_logger
from .merge import merge
from .models import COMPLETED, ArchiveConfig, MappingConfig, ProcessingJob
from .textparse import parse_file

logger = get_logger(__name__)

_UNSAFE_KEY_RE = re.compile(r"[^a-zA-Z0-9._-]")


def safe_key(match_key: str) -> str:
    return _UNSAFE_KEY_RE.sub("_", match_key)


def merge_output_name(match_key: str, when: datetime) -> str:
    return f"Merge_{safe_key(match_key)}_{when.strftime('%Y%m%d_%H%M%S')}.xlsx"


def process_batch(
    match_key: str,
    files: Mapping[int, str],
    config: MappingConfig,
    output_root: Optional[str] = None,
    mapping_name: Optional[str] = None,
    on_event: Optional[Callable[[str, Any], None]] = None,
    clock: Callable[[], datetime] = datetime.now,
) -> ProcessingJob:
    job = ProcessingJob(match_key=match_key, input_files=dict(files))

    def _emit(event: str, payload: Any) -> None:
        if on_event is not None:
            try:
                on_event(event, payload)
            except Exception:
                logger.debug("Progress callback failed for %r", event, exc_info=True)

    archive_cfg = config.archive_config or ArchiveConfig()
    root_dir = output_root or archive_cfg.output_folder

    job.start_processing()
    _emit("start", job)
    logger.info("Processing batch %s (%d files)", match_key, len(files))

    try:
        if not root_dir:
            raise AppError(BAD_CONFIG, "No output folder configured for multi-file run mode")

        tables = {}
        for slot, path in sorted(files.items()):
            table = parse_file(path)
            if not table:
                logger.warning("No data parsed from slot %d file %s", slot, path)
            tables[slot] = table

        root = archive_root(root_dir, mapping_name)
        os.makedirs(root, exist_ok=True)
        output = os.path.join(root, merge_output_name(match_key, clock()))

        for w in merge(tables, config, output):
            _emit("warning", w)

        manager = ArchiveManager(
            ArchiveConfig(
                output_folder=root,
                timestamp_format=archive_cfg.timestamp_format,
                archive_input_files=archive_cfg.archive_input_files,
            ),
            clock=clock,
        )
        folder = manager.archive(files, output)
        job.complete(os.path.join(folder, os.path.basename(output)), folder)
    except AppError as e:
        logger.error("Batch %s failed: %s", match_key, e)
        job.fail(e.message)
    except Exception as e:
        logger.exception("Batch %s failed", match_key)
        job.fail(str(e))

    if job.status == COMPLETED:
        logger.info("Batch %s complete: %s", match_key, job.output_file)
        _emit("completed", job)
    else:
        _emit("failed", job)
    return job
