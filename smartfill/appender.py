"""
smartfill/appender.py — Create / append executor for single-source output.

Responsible for:
  - Laying a mapping plan onto a fresh workbook (write_new)
  - Appending a plan below the existing data of a target workbook (append)
  - Title de-duplication on append
  - Atomic commit: all writes in memory, one save via temp file + os.replace
  - Reporting every outcome as an AppendResult (never raising for a missing,
    locked or malformed target)

Append placement:
  offset      = last used row + 1 (0 for an empty sheet; gaps do not matter)
  block_base  = smallest anchor row among mappings that produced data
  every data write moves by (offset - block_base), so the first data row of
  the new block lands exactly at offset whatever the anchor row is.
An empty target sheet is laid out exactly like a fresh one.

This module has NO knowledge of watching, archiving or batches.
"""
from __future__ import annotations

import os
from typing import List, Sequence

from .errors import AppError
from .io import (
    DEFAULT_SHEET,
    check_access,
    get_or_create_sheet,
    load_target,
    new_workbook,
    save_workbook_atomic,
)
from .landing import contains_text, last_used_row, read_cells
from .log import get_logger
from .models import AppendResult, ColumnMapping, ParsedTable
from .parsing import to_cell_ref
from .planner import build_plans
from .textparse import parse_file
from .writer import apply_writes

logger = get_logger(__name__)


def _failed(e: AppError, path: str) -> AppendResult:
    logger.warning("%s", e)
    return AppendResult.failed(e.code, e.message, os.path.abspath(path))


# ── Fresh workbook ────────────────────────────────────────────────────────────

def write_new(
    table: ParsedTable,
    mappings: Sequence[ColumnMapping],
    output_path: str,
    sheet_name: str = DEFAULT_SHEET,
) -> AppendResult:
    """
    Create a new workbook at output_path holding the mapped table.
    An existing file at output_path is replaced.
    """
    plan = build_plans(table, mappings, missing_column="skip")
    wb, ws = new_workbook(sheet_name)

    apply_writes(ws, plan.titles)
    rows_added = apply_writes(ws, plan.writes)

    try:
        target = save_workbook_atomic(wb, output_path)
    except AppError as e:
        return _failed(e, output_path)

    logger.info("Created %s (%d rows)", target, rows_added)
    return AppendResult.ok(rows_added, 0, target, plan.warnings)


# ── Append ────────────────────────────────────────────────────────────────────

def append(
    table: ParsedTable,
    mappings: Sequence[ColumnMapping],
    target_path: str,
    sheet_name: str = DEFAULT_SHEET,
) -> AppendResult:
    """
    Append the mapped table below the existing data of target_path.

    Failures (FILE_NOT_FOUND, FILE_LOCKED, MALFORMED_TARGET, SAVE_FAILED) come
    back as an unsuccessful AppendResult and leave the file untouched. Nothing
    is retried here; the caller decides whether to recreate the target.
    """
    try:
        check_access(target_path)
        wb = load_target(target_path)
    except AppError as e:
        return _failed(e, target_path)

    ws = get_or_create_sheet(wb, sheet_name)
    cell_map = read_cells(ws)
    offset = last_used_row(cell_map) + 1

    plan = build_plans(table, mappings, missing_column="skip")
    warnings: List[str] = list(plan.warnings)

    if offset == 0:
        # empty sheet: same layout as a fresh workbook
        titles_written = apply_writes(ws, plan.titles)
        rows_added = apply_writes(ws, plan.writes)
    else:
        titles_written = 0
        for title in plan.titles:
            if contains_text(cell_map, title.value):
                continue
            if (title.row, title.col) in cell_map:
                warnings.append(
                    f"Title '{title.value}' not written: {to_cell_ref(title.row, title.col)} is occupied"
                )
                continue
            titles_written += apply_writes(ws, [title])
        rows_added = apply_writes(ws, plan.writes, row_shift=offset - plan.block_base)

    resolved = os.path.abspath(target_path)
    if rows_added == 0 and titles_written == 0:
        logger.info("Nothing to append to %s", resolved)
        return AppendResult.ok(0, offset, resolved, warnings)

    try:
        resolved = save_workbook_atomic(wb, target_path)
    except AppError as e:
        return _failed(e, target_path)

    logger.info("Appended %d rows to %s at row %d", rows_added, resolved, offset)
    return AppendResult.ok(rows_added, offset, resolved, warnings)


# ── Source-file entry points ──────────────────────────────────────────────────

_EMPTY_SOURCE = "No data parsed from {}; nothing written"


def write_new_file(
    source_path: str,
    mappings: Sequence[ColumnMapping],
    output_path: str,
    sheet_name: str = DEFAULT_SHEET,
) -> AppendResult:
    table = parse_file(source_path)
    if not table:
        return AppendResult.ok(0, 0, os.path.abspath(output_path),
                               [_EMPTY_SOURCE.format(os.path.basename(source_path))])
    return write_new(table, mappings, output_path, sheet_name)


def append_file(
    source_path: str,
    mappings: Sequence[ColumnMapping],
    target_path: str,
    sheet_name: str = DEFAULT_SHEET,
) -> AppendResult:
    table = parse_file(source_path)
    if not table:
        return AppendResult.ok(0, 0, os.path.abspath(target_path),
                               [_EMPTY_SOURCE.format(os.path.basename(source_path))])
    return append(table, mappings, target_path, sheet_name)
