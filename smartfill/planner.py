"""
smartfill/planner.py — Mapping plan builder.

Turns a ParsedTable plus ColumnMappings into CellWrites laid out as on a fresh
sheet. The plan is pure data; placement against an existing sheet (append
offset, title de-duplication) is the appender's job.

Missing-column policy:
  "skip"   — a selected row too short for the source column produces no write
             (single-file create and append paths).
  "blank"  — the same row writes "" (multi-file merge), so every selected row
             still occupies its slot in the output.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Literal, Optional, Sequence, Tuple

from .errors import AppError, BAD_SPEC
from .log import get_logger
from .models import CellWrite, ColumnMapping, ParsedTable
from .parsing import to_cell_ref
from .transform import resolve_rows

logger = get_logger(__name__)

MissingColumn = Literal["skip", "blank"]


@dataclass(frozen=True)
class MappingPlan:
    writes: Tuple[CellWrite, ...] = ()
    titles: Tuple[CellWrite, ...] = ()
    warnings: Tuple[str, ...] = ()
    anchor_rows: Tuple[int, ...] = ()   # anchor rows of mappings that produced data

    @property
    def block_base(self) -> int:
        return min(self.anchor_rows) if self.anchor_rows else 0

    @property
    def rows_touched(self) -> int:
        return len({w.row for w in self.writes})

    def __add__(self, other: "MappingPlan") -> "MappingPlan":
        return MappingPlan(
            writes=self.writes + other.writes,
            titles=self.titles + other.titles,
            warnings=self.warnings + other.warnings,
            anchor_rows=self.anchor_rows + other.anchor_rows,
        )


def _title_cell(mapping: ColumnMapping) -> Tuple[Optional[Tuple[int, int]], str]:
    """Title position: the cell above a vertical anchor, left of a horizontal one."""
    r, c = mapping.target_row, mapping.target_col
    if mapping.is_vertical:
        if r > 0:
            return (r - 1, c), ""
        return None, (
            f"Title '{mapping.title}' skipped for {to_cell_ref(r, c)}: "
            "no row above the target cell"
        )
    if c > 0:
        return (r, c - 1), ""
    return None, (
        f"Title '{mapping.title}' skipped for {to_cell_ref(r, c)}: "
        "no column left of the target cell"
    )


def build_plan(
    table: ParsedTable,
    mapping: ColumnMapping,
    missing_column: MissingColumn = "skip",
) -> MappingPlan:
    """
    Plan one mapping. The row at position k of the resolved selection lands at
      vertical   -> (target_row + k, target_col)
      horizontal -> (target_row, target_col + k)

    Source rows outside the table are skipped and leave their position empty.
    """
    if missing_column not in ("skip", "blank"):
        raise AppError(BAD_SPEC, f"Bad missing-column policy: {missing_column!r}")

    total = len(table)
    writes: List[CellWrite] = []
    warnings: List[str] = []

    for k, src_row in enumerate(resolve_rows(mapping.rows, total)):
        if src_row < 0 or src_row >= total:
            logger.debug("Row %s out of range (%d rows); skipped", src_row, total)
            continue
        row = table.row(src_row)
        if mapping.source_column < len(row):
            value = row[mapping.source_column]
        elif missing_column == "blank":
            value = ""
        else:
            continue

        if mapping.is_vertical:
            writes.append(CellWrite(mapping.target_row + k, mapping.target_col, value))
        else:
            writes.append(CellWrite(mapping.target_row, mapping.target_col + k, value))

    titles: List[CellWrite] = []
    if mapping.title:
        pos, warning = _title_cell(mapping)
        if pos is not None:
            titles.append(CellWrite(pos[0], pos[1], mapping.title))
        else:
            warnings.append(warning)

    return MappingPlan(
        writes=tuple(writes),
        titles=tuple(titles),
        warnings=tuple(warnings),
        anchor_rows=(mapping.target_row,) if writes else (),
    )


def build_plans(
    table: ParsedTable,
    mappings: Sequence[ColumnMapping],
    missing_column: MissingColumn = "skip",
) -> MappingPlan:
    """Plan every mapping in order and concatenate the results."""
    plan = MappingPlan()
    for mapping in mappings:
        plan = plan + build_plan(table, mapping, missing_column)
    return plan
