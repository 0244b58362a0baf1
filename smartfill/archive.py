"""
smartfill/archive.py — Timestamped archive folders for processed files.

Multi-source layout:
  <output_root>/<mapping name>/<timestamp>/
      Merge_<key>_<stamp>.xlsx
      inputs/<slot files>

Single-source sources are moved into <folder>/archive/ by archive_source().
"""
from __future__ import annotations

import os
import shutil
from datetime import datetime
from typing import Callable, Mapping, Optional

from .log import get_logger
from .models import ArchiveConfig

logger = get_logger(__name__)

DATE_ONLY_FORMAT = "%Y-%m-%d"
DATETIME_FORMAT = "%Y-%m-%d_%H%M%S"
DEFAULT_ROOT_NAME = "Merged Data"
INPUTS_DIR = "inputs"
SOURCE_ARCHIVE_DIR = "archive"


def format_timestamp(when: datetime, timestamp_format: str = "datetime") -> str:
    if timestamp_format == "date_only":
        return when.strftime(DATE_ONLY_FORMAT)
    return when.strftime(DATETIME_FORMAT)


def archive_root(output_root: str, mapping_name: Optional[str] = None) -> str:
    return os.path.join(output_root, mapping_name or DEFAULT_ROOT_NAME)


def archive_source(source: str, folder: str) -> str:
    """Move a processed single-source input into <folder>/archive/. Returns the new path."""
    dest_dir = os.path.join(folder, SOURCE_ARCHIVE_DIR)
    os.makedirs(dest_dir, exist_ok=True)
    dest = os.path.join(dest_dir, os.path.basename(source))
    _move(source, dest)
    logger.info("Archived source: %s", dest)
    return dest


def _move(src: str, dest: str) -> None:
    if os.path.exists(dest):
        os.remove(dest)
    shutil.move(src, dest)


class ArchiveManager:
    """
    Creates <output_folder>/<timestamp>/ and files a batch's output and inputs
    into it.
    """

    def __init__(self, config: ArchiveConfig, clock: Callable[[], datetime] = datetime.now):
        self.config = config
        self._clock = clock

    @property
    def output_folder(self) -> str:
        return self.config.output_folder

    def create_archive_folder(self) -> str:
        stamp = format_timestamp(self._clock(), self.config.timestamp_format)
        folder = os.path.join(self.config.output_folder, stamp)
        os.makedirs(folder, exist_ok=True)
        logger.info("Created archive folder: %s", folder)
        return folder

    def _create_with_inputs(self) -> str:
        folder = self.create_archive_folder()
        os.makedirs(os.path.join(folder, INPUTS_DIR), exist_ok=True)
        return folder

    def archive(self, input_files: Mapping[int, str], output_file: str) -> str:
        """
        Move the output into the archive folder. Inputs go under inputs/, moved
        when archive_input_files is set and copied otherwise.
        """
        folder = self._create_with_inputs()
        inputs_dir = os.path.join(folder, INPUTS_DIR)

        archived_output = os.path.join(folder, os.path.basename(output_file))
        _move(output_file, archived_output)
        logger.info("Archived output: %s", archived_output)

        for slot, path in sorted(input_files.items()):
            if not os.path.exists(path):
                logger.warning("Input for slot %d is gone, not archived: %s", slot, path)
                continue
            dest = os.path.join(inputs_dir, os.path.basename(path))
            if self.config.archive_input_files:
                _move(path, dest)
            else:
                shutil.copy2(path, dest)
            logger.debug("Archived input slot %d: %s", slot, dest)

        logger.info("Archive complete: %d input files + 1 output", len(input_files))
        return folder

    def archive_copy(self, input_files: Mapping[int, str], output_file: str) -> str:
        """Copy the output and every input, leaving the originals in place."""
        folder = self._create_with_inputs()
        inputs_dir = os.path.join(folder, INPUTS_DIR)

        shutil.copy2(output_file, os.path.join(folder, os.path.basename(output_file)))
        for _slot, path in sorted(input_files.items()):
            if os.path.exists(path):
                shutil.copy2(path, os.path.join(inputs_dir, os.path.basename(path)))
        return folder
