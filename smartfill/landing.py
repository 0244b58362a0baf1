"""
smartfill/landing.py — Worksheet occupancy scan for append placement.

This module is the SOLE authority for:
  1. The occupancy definition shared by append offset and title placement.
  2. Finding the last used row of a worksheet (the append offset).
  3. Answering "is this text already in the sheet" for title de-duplication.

Reads go through ws.iter_rows() only, never ws.cell() in a scan loop: reading
an unwritten cell with ws.cell() registers it and silently inflates
ws.max_row, which would push every later append further down the sheet.

Public API:
  is_occupied(value)                 -> bool
  read_cells(ws)                     -> CellMap  (0-based keys)
  last_used_row(cell_map)            -> int      (0-based, -1 when empty)
  contains_text(cell_map, text)      -> bool
"""
from __future__ import annotations

from typing import Any, Dict, Tuple

from openpyxl.worksheet.worksheet import Worksheet


CellMap = Dict[Tuple[int, int], Any]


# ── Occupancy definition ──────────────────────────────────────────────────────

def is_occupied(value: Any) -> bool:
    """
    OCCUPIED   — text (incl. whitespace), numbers (incl. 0), dates, booleans.
    UNOCCUPIED — None and the empty string.
    """
    if value is None:
        return False
    if isinstance(value, str) and value == "":
        return False
    return True


# ── Worksheet snapshot ────────────────────────────────────────────────────────

def read_cells(ws: Worksheet) -> CellMap:
    """
    Snapshot every occupied cell as {(row, col): value} with 0-based keys.
    """
    cell_map: CellMap = {}
    if not ws.max_row:
        return cell_map
    for row_cells in ws.iter_rows(min_row=1, max_row=ws.max_row):
        for cell in row_cells:
            if is_occupied(cell.value):
                cell_map[(cell.row - 1, cell.column - 1)] = cell.value
    return cell_map


# ── Scan ──────────────────────────────────────────────────────────────────────

def last_used_row(cell_map: CellMap) -> int:
    """
    Highest 0-based row holding an occupied cell, or -1. Gaps above it do not
    matter; the append offset is this plus one.
    """
    return max((r for (r, _c) in cell_map), default=-1)


# ── Title lookup ──────────────────────────────────────────────────────────────

def contains_text(cell_map: CellMap, text: str) -> bool:
    """True when any cell's string form equals text (surrounding spaces ignored)."""
    needle = (text or "").strip()
    if not needle:
        return False
    for value in cell_map.values():
        if str(value).strip() == needle:
            return True
    return False
