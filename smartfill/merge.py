"""
smartfill/merge.py — Multi-source merge into one fresh workbook.

Each mapping reads from the table of its source_file_slot. A selected row that
is too short for the source column writes "" so every row keeps its place.
"""
from __future__ import annotations

from typing import List, Mapping

from .errors import AppError, BAD_SPEC
from .io import new_workbook, save_workbook_atomic
from .log import get_logger
from .models import MAX_SLOT, MIN_SLOT, MappingConfig, ParsedTable
from .planner import build_plan
from .writer import apply_writes

logger = get_logger(__name__)

MERGE_SHEET = "Merged Data"


def validate_file_count(count: int) -> None:
    if count < MIN_SLOT:
        raise AppError(BAD_SPEC, f"At least {MIN_SLOT} file is required for a merge (got {count})")
    if count > MAX_SLOT:
        raise AppError(BAD_SPEC, f"Maximum {MAX_SLOT} files allowed for a merge (got {count})")


def merge(
    tables_by_slot: Mapping[int, ParsedTable],
    config: MappingConfig,
    output_path: str,
    sheet_name: str = MERGE_SHEET,
) -> List[str]:
    """
    Write every mapping of config into a new workbook at output_path.

    Returns the warnings collected along the way (missing slot data, dropped
    titles). Save failures raise AppError(SAVE_FAILED | FILE_LOCKED).
    """
    validate_file_count(len(tables_by_slot))
    logger.info("Merging %d input files into %s", len(tables_by_slot), output_path)

    wb, ws = new_workbook(sheet_name)
    warnings: List[str] = []

    for mapping in config.mappings:
        table = tables_by_slot.get(mapping.source_file_slot)
        if table is None:
            msg = f"No data for file slot {mapping.source_file_slot}; mapping skipped"
            logger.warning(msg)
            warnings.append(msg)
            continue

        plan = build_plan(table, mapping, missing_column="blank")
        for w in plan.warnings:
            logger.warning(w)
        warnings.extend(plan.warnings)

        apply_writes(ws, plan.titles)
        apply_writes(ws, plan.writes)

    save_workbook_atomic(wb, output_path)
    logger.info("Merge complete: %s", output_path)
    return warnings
