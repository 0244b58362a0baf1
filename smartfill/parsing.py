from __future__ import annotations

import re
from typing import Any, Tuple

from .errors import AppError, BAD_MAPPING


_COL_RE = re.compile(r"^[A-Z]+$")
_CELL_RE = re.compile(r"^\s*([A-Za-z]+)\s*(\d+)\s*$")
_INT_RE = re.compile(r"^\s*\d+\s*$")


def col_letters_to_index(col: str) -> int:
    """
    Convert Excel column letters to 1-based index (A->1, Z->26, AA->27).
    """
    s = (col or "").strip().upper()
    if not s or not _COL_RE.match(s):
        raise AppError(BAD_MAPPING, f"Bad column: {col!r}")
    n = 0
    for ch in s:
        n = n * 26 + (ord(ch) - ord("A") + 1)
    return n


def col_index_to_letters(n: int) -> str:
    """
    Convert 1-based index to Excel column letters (1->A).
    """
    if n <= 0:
        raise AppError(BAD_MAPPING, f"Bad column index: {n}")
    out = []
    x = n
    while x:
        x, rem = divmod(x - 1, 26)
        out.append(chr(ord("A") + rem))
    return "".join(reversed(out))


def parse_source_column(ref: Any) -> int:
    """
    Resolve a source column reference to a 0-based index.

    Letters use base-26 with 1-origin digits (A->0, B->1, AA->26).
    Plain integers (int or digit string) are already 0-based indexes.
    """
    if isinstance(ref, bool):
        raise AppError(BAD_MAPPING, f"Bad source column: {ref!r}")
    if isinstance(ref, int):
        if ref < 0:
            raise AppError(BAD_MAPPING, f"Source column must be >= 0: {ref}")
        return ref
    s = str(ref if ref is not None else "").strip()
    if _INT_RE.match(s):
        return int(s)
    if s and s[0].isalpha():
        return col_letters_to_index(s) - 1
    raise AppError(BAD_MAPPING, f"Bad source column: {ref!r}")


def parse_cell_ref(ref: str) -> Tuple[int, int]:
    """
    Parse an A1-style reference into a 0-based (row, col) pair (B5 -> (4, 1)).
    """
    m = _CELL_RE.match(ref or "")
    if not m:
        raise AppError(BAD_MAPPING, f"Bad cell reference: {ref!r}")
    row = int(m.group(2))
    if row <= 0:
        raise AppError(BAD_MAPPING, f"Row numbers must be >= 1: {ref!r}")
    col = col_letters_to_index(m.group(1)) - 1
    return row - 1, col


def to_cell_ref(row: int, col: int) -> str:
    """Inverse of parse_cell_ref: (4, 1) -> 'B5'."""
    return f"{col_index_to_letters(col + 1)}{row + 1}"
