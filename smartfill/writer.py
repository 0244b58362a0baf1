"""
smartfill/writer.py — Applies planned CellWrites to a worksheet.

Critical rule: None values are NEVER written to cells. Writing None explicitly
via ws.cell(value=None) registers a phantom cell in openpyxl, inflating
ws.max_row and ws.max_column. This corrupts subsequent append scans.

Numeric coercion happens here, at write time: a value whose trimmed text is a
finite decimal number is stored as a number, anything else as text.
"""
from __future__ import annotations

import math
import re
from typing import Any, Iterable

from openpyxl.worksheet.worksheet import Worksheet

from .models import CellWrite


_NUMBER_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
_INT_RE = re.compile(r"^[+-]?\d+$")


def coerce_value(value: Any) -> Any:
    """
    "12"     -> 12
    "-0.5"   -> -0.5
    "1e3"    -> 1000.0
    "NaN"    -> "NaN"      (not a finite decimal)
    "1e400"  -> "1e400"    (overflows to inf)
    "12 mm"  -> "12 mm"
    """
    if not isinstance(value, str):
        return value
    s = value.strip()
    if not s or not _NUMBER_RE.match(s):
        return value
    if _INT_RE.match(s):
        return int(s)
    f = float(s)
    if not math.isfinite(f):
        return value
    return f


def apply_writes(ws: Worksheet, writes: Iterable[CellWrite], row_shift: int = 0) -> int:
    """
    Write each CellWrite (0-based) at (row + row_shift, col).
    Returns the number of distinct sheet rows written.
    """
    rows = set()
    for w in writes:
        if w.value is None:
            continue          # never register a phantom cell
        row = w.row + row_shift
        ws.cell(row=row + 1, column=w.col + 1, value=coerce_value(w.value))
        rows.add(row)
    return len(rows)
