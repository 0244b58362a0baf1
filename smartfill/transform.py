from __future__ import annotations

from typing import List

from .errors import AppError, BAD_SPEC
from .models import ExplicitRows, RowPattern, RowSelector


def generate_indexes(total_rows: int, pattern_type: str, start_index: int = 0) -> List[int]:
    """
    0-based row indexes from start_index up to total_rows.

    Odd/even refer to the 1-based row number a user sees, so index i is
    "odd" when i + 1 is odd:
      generate_indexes(10, "odd", 0)  -> [0, 2, 4, 6, 8]
      generate_indexes(10, "even", 0) -> [1, 3, 5, 7, 9]
    """
    kind = (pattern_type or "").strip().lower()
    if kind not in ("odd", "even", "all"):
        raise AppError(BAD_SPEC, f"Bad row pattern type: {pattern_type!r}")

    out = []
    for i in range(max(0, start_index), total_rows):
        row_num = i + 1
        if kind == "all":
            out.append(i)
        elif kind == "odd" and row_num % 2 == 1:
            out.append(i)
        elif kind == "even" and row_num % 2 == 0:
            out.append(i)
    return out


def resolve_rows(selector: RowSelector, total_rows: int) -> List[int]:
    """
    Turn a row selector into a concrete list of source row indexes.
    Explicit lists are returned as given; bounds are checked by the planner.
    """
    if isinstance(selector, ExplicitRows):
        return list(selector.indexes)
    if isinstance(selector, RowPattern):
        return generate_indexes(total_rows, selector.kind, selector.start)
    raise AppError(BAD_SPEC, f"Unknown row selector: {selector!r}")
