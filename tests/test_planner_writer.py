"""
test_planner_writer.py — Mapping plans and write-time coercion.

Covers:
  - vertical / horizontal placement by selection position
  - out-of-range rows skipped, missing columns skipped or blanked
  - title placement and dropped-title warnings
  - block_base / rows_touched bookkeeping
  - numeric coercion and the no-phantom-cell rule
"""
from __future__ import annotations

import pytest
from openpyxl import Workbook

from smartfill.errors import AppError, BAD_SPEC
from smartfill.models import CellWrite, ColumnMapping, ExplicitRows, ParsedTable, RowPattern
from smartfill.planner import MappingPlan, build_plan, build_plans
from smartfill.writer import apply_writes, coerce_value


TABLE = ParsedTable.from_rows([
    ["a", "1"],
    ["b", "2"],
    ["c"],
])


# ══════════════════════════════════════════════════════════════════════════════
# PLACEMENT
# ══════════════════════════════════════════════════════════════════════════════

class TestPlacement:
    def test_vertical_goes_down_from_anchor(self):
        plan = build_plan(TABLE, ColumnMapping(0, 1, 2))
        assert plan.writes == (
            CellWrite(1, 2, "a"),
            CellWrite(2, 2, "b"),
            CellWrite(3, 2, "c"),
        )

    def test_horizontal_goes_right_from_anchor(self):
        plan = build_plan(TABLE, ColumnMapping(0, 4, 1, direction="horizontal"))
        assert [(w.row, w.col) for w in plan.writes] == [(4, 1), (4, 2), (4, 3)]

    def test_position_follows_selection_not_source_index(self):
        m = ColumnMapping(0, 0, 0, rows=RowPattern("odd", 0))
        plan = build_plan(TABLE, m)
        assert plan.writes == (CellWrite(0, 0, "a"), CellWrite(1, 0, "c"))

    def test_out_of_range_rows_skipped_but_keep_their_slot(self):
        m = ColumnMapping(0, 0, 0, rows=ExplicitRows((2, 10, -1, 0)))
        plan = build_plan(TABLE, m)
        assert plan.writes == (CellWrite(0, 0, "c"), CellWrite(3, 0, "a"))


# ══════════════════════════════════════════════════════════════════════════════
# MISSING COLUMN POLICY
# ══════════════════════════════════════════════════════════════════════════════

class TestMissingColumn:
    def test_skip_policy_writes_nothing_for_short_rows(self):
        plan = build_plan(TABLE, ColumnMapping(1, 0, 0), missing_column="skip")
        assert plan.writes == (CellWrite(0, 0, "1"), CellWrite(1, 0, "2"))

    def test_blank_policy_writes_empty_string(self):
        plan = build_plan(TABLE, ColumnMapping(1, 0, 0), missing_column="blank")
        assert plan.writes[-1] == CellWrite(2, 0, "")

    def test_unknown_policy_rejected(self):
        with pytest.raises(AppError) as ei:
            build_plan(TABLE, ColumnMapping(0, 0, 0), missing_column="zero")
        assert ei.value.code == BAD_SPEC


# ══════════════════════════════════════════════════════════════════════════════
# TITLES
# ══════════════════════════════════════════════════════════════════════════════

class TestTitles:
    def test_vertical_title_above_anchor(self):
        plan = build_plan(TABLE, ColumnMapping(0, 1, 0, title="Part"))
        assert plan.titles == (CellWrite(0, 0, "Part"),)
        assert plan.warnings == ()

    def test_horizontal_title_left_of_anchor(self):
        plan = build_plan(TABLE, ColumnMapping(0, 3, 2, direction="horizontal", title="Row"))
        assert plan.titles == (CellWrite(3, 1, "Row"),)

    def test_vertical_title_on_row_zero_dropped_with_warning(self):
        plan = build_plan(TABLE, ColumnMapping(0, 0, 0, title="Part"))
        assert plan.titles == ()
        assert len(plan.warnings) == 1
        assert "Part" in plan.warnings[0]

    def test_horizontal_title_on_col_zero_dropped_with_warning(self):
        plan = build_plan(TABLE, ColumnMapping(0, 2, 0, direction="horizontal", title="Row"))
        assert plan.titles == ()
        assert plan.warnings

    def test_no_title_no_warning(self):
        plan = build_plan(TABLE, ColumnMapping(0, 0, 0))
        assert plan.titles == () and plan.warnings == ()


# ══════════════════════════════════════════════════════════════════════════════
# COMBINED PLANS
# ══════════════════════════════════════════════════════════════════════════════

def test_build_plans_concatenates_in_mapping_order():
    plan = build_plans(TABLE, [ColumnMapping(0, 1, 0), ColumnMapping(1, 3, 1, title="V")])
    assert plan.writes[0] == CellWrite(1, 0, "a")
    assert plan.writes[-1] == CellWrite(4, 1, "2")
    assert plan.titles == (CellWrite(2, 1, "V"),)


def test_block_base_ignores_mappings_without_data():
    empty_col = ColumnMapping(5, 0, 3)           # no row has column 5
    plan = build_plans(TABLE, [empty_col, ColumnMapping(0, 2, 0), ColumnMapping(0, 4, 1)])
    assert plan.block_base == 2


def test_rows_touched_counts_distinct_rows():
    plan = build_plans(TABLE, [ColumnMapping(0, 0, 0), ColumnMapping(1, 0, 1)])
    assert plan.rows_touched == 3


def test_empty_plan_defaults():
    plan = MappingPlan()
    assert plan.block_base == 0
    assert plan.rows_touched == 0


# ══════════════════════════════════════════════════════════════════════════════
# WRITER
# ══════════════════════════════════════════════════════════════════════════════

@pytest.mark.parametrize("raw,expected", [
    ("12", 12),
    (" -7 ", -7),
    ("+3", 3),
    ("10.5", 10.5),
    (".5", 0.5),
    ("1e3", 1000.0),
    ("-2.5E-1", -0.25),
])
def test_coerce_numbers(raw, expected):
    value = coerce_value(raw)
    assert value == expected
    assert type(value) is type(expected)


@pytest.mark.parametrize("raw", [
    "NaN", "Infinity", "-inf", "12 mm", "1,5", "", "  ", "PASS", "0x1F", "1e400", "-1e999",
])
def test_coerce_leaves_text(raw):
    assert coerce_value(raw) == raw


def test_apply_writes_is_zero_based_and_counts_rows():
    wb = Workbook()
    ws = wb.active
    n = apply_writes(ws, [CellWrite(0, 0, "x"), CellWrite(0, 1, "2"), CellWrite(2, 0, "y")])
    assert n == 2
    assert ws["A1"].value == "x"
    assert ws["B1"].value == 2
    assert ws["A3"].value == "y"


def test_apply_writes_row_shift():
    wb = Workbook()
    ws = wb.active
    apply_writes(ws, [CellWrite(0, 0, "x")], row_shift=4)
    assert ws["A5"].value == "x"


def test_apply_writes_never_writes_none():
    wb = Workbook()
    ws = wb.active
    apply_writes(ws, [CellWrite(0, 0, "x"), CellWrite(40, 0, None)])
    assert ws.max_row == 1
