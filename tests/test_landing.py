"""
tests/test_landing.py

Unit tests for smartfill.landing — occupancy and last-used-row scanning.

The pure helpers work on plain dicts (CellMap); the worksheet helpers are
checked against real openpyxl sheets, including the phantom-cell trap.
"""
from __future__ import annotations

from datetime import datetime

from openpyxl import Workbook

from smartfill.landing import (
    contains_text,
    is_occupied,
    last_used_row,
    read_cells,
)


# ══════════════════════════════════════════════════════════════════════════════
# is_occupied
# ══════════════════════════════════════════════════════════════════════════════

class TestIsOccupied:
    def test_none_and_empty_are_unoccupied(self):
        assert is_occupied(None) is False
        assert is_occupied("") is False

    def test_text_is_occupied(self):
        assert is_occupied("hello") is True
        assert is_occupied(" ") is True

    def test_zero_and_false_are_occupied(self):
        assert is_occupied(0) is True
        assert is_occupied(0.0) is True
        assert is_occupied(False) is True

    def test_date_is_occupied(self):
        assert is_occupied(datetime(2024, 1, 1)) is True


# ══════════════════════════════════════════════════════════════════════════════
# CellMap helpers
# ══════════════════════════════════════════════════════════════════════════════

def test_last_used_row_empty():
    assert last_used_row({}) == -1


def test_last_used_row_ignores_gaps():
    assert last_used_row({(0, 0): "a", (4, 3): "b", (2, 1): "c"}) == 4


def test_contains_text_trims():
    cells = {(0, 0): "  Header ", (1, 0): 12}
    assert contains_text(cells, "Header")
    assert contains_text(cells, "12")
    assert not contains_text(cells, "Other")
    assert not contains_text(cells, "   ")


# ══════════════════════════════════════════════════════════════════════════════
# Worksheet scans
# ══════════════════════════════════════════════════════════════════════════════

def _ws():
    return Workbook().active


def test_read_cells_zero_based_and_skips_empty():
    ws = _ws()
    ws["B3"] = "x"
    ws["A1"] = ""
    assert read_cells(ws) == {(2, 1): "x"}


def test_empty_sheet():
    ws = _ws()
    assert last_used_row(read_cells(ws)) == -1


def test_gaps_do_not_matter():
    ws = _ws()
    for ref in ("A1", "A3", "A5"):
        ws[ref] = "v"
    assert last_used_row(read_cells(ws)) == 4


def test_scan_does_not_create_phantom_cells():
    ws = _ws()
    ws["A2"] = "v"
    before = ws.max_row
    read_cells(ws)
    assert ws.max_row == before


def test_cleared_trailing_cells_are_not_counted():
    ws = _ws()
    ws["A1"] = "keep"
    ws["A9"] = "gone"
    ws["A9"] = None
    assert last_used_row(read_cells(ws)) == 0
