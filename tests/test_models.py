"""
test_models.py — Value types and the ProcessingJob state machine.
"""
from __future__ import annotations

import pytest

from smartfill.errors import AppError, BAD_MAPPING, BAD_SPEC, INVALID_SLOT, INVALID_TRANSITION
from smartfill.models import (
    COMPLETED,
    FAILED,
    PENDING,
    PROCESSING,
    AppendResult,
    ColumnMapping,
    FileSlot,
    MappingConfig,
    ParsedTable,
    ProcessingJob,
    RowPattern,
    WatchFolder,
    check_slot,
)


# ══════════════════════════════════════════════════════════════════════════════
# ParsedTable
# ══════════════════════════════════════════════════════════════════════════════

def test_parsed_table_cell_pads_short_rows():
    t = ParsedTable.from_rows([["a", "b"], ["c"]])
    assert len(t) == 2
    assert t.cell(1, 0) == "c"
    assert t.cell(1, 1) == ""
    assert t.to_lists() == [["a", "b"], ["c"]]


def test_empty_table_is_falsy():
    assert not ParsedTable()
    assert ParsedTable.from_rows([[""]])


# ══════════════════════════════════════════════════════════════════════════════
# Mapping model
# ══════════════════════════════════════════════════════════════════════════════

@pytest.mark.parametrize("kw", [
    {"source_column": -1},
    {"target_row": -1},
    {"target_col": -2},
    {"direction": "diagonal"},
    {"source_file_slot": 0},
    {"source_file_slot": 11},
])
def test_column_mapping_rejects(kw):
    args = {"source_column": 0, "target_row": 0, "target_col": 0}
    args.update(kw)
    with pytest.raises(AppError) as ei:
        ColumnMapping(**args)
    assert ei.value.code == BAD_MAPPING


def test_row_pattern_normalises_kind():
    assert RowPattern(" ODD ").kind == "odd"
    with pytest.raises(AppError) as ei:
        RowPattern("all", -1)
    assert ei.value.code == BAD_SPEC


@pytest.mark.parametrize("slot", [0, 11, True, "1"])
def test_check_slot(slot):
    with pytest.raises(AppError) as ei:
        check_slot(slot)
    assert ei.value.code == INVALID_SLOT


def test_mapping_config_slots():
    cfg = MappingConfig.single_file([ColumnMapping(0, 0, 0)])
    assert cfg.required_file_count == 1
    for i in range(2, 11):
        cfg.add_file_slot(FileSlot(i))
    assert cfg.is_multi_file
    with pytest.raises(AppError):
        cfg.add_file_slot(FileSlot(10))


def test_watch_folder_ready_flag():
    wf = WatchFolder("/in", 3)
    assert not wf.has_file_ready
    wf.last_detected_file = "/in/a.txt"
    assert wf.has_file_ready
    with pytest.raises(AppError):
        WatchFolder("/in", 12)


# ══════════════════════════════════════════════════════════════════════════════
# ProcessingJob
# ══════════════════════════════════════════════════════════════════════════════

class TestProcessingJob:
    def test_happy_path(self):
        job = ProcessingJob("P1", {1: "a.txt"})
        assert job.status == PENDING
        job.start_processing()
        assert job.status == PROCESSING and job.start_time is not None
        job.complete("/out/m.xlsx", "/out")
        assert job.status == COMPLETED
        assert job.is_terminal
        assert job.end_time is not None

    def test_fail_from_pending_or_processing(self):
        job = ProcessingJob("P1")
        job.fail("nope")
        assert job.status == FAILED
        assert job.error_message == "nope"

        job = ProcessingJob("P2")
        job.start_processing()
        job.fail("late")
        assert job.status == FAILED

    def test_terminal_states_are_final(self):
        job = ProcessingJob("P1")
        job.start_processing()
        job.complete("/o.xlsx", None)
        for action in (job.start_processing, lambda: job.fail("x"), lambda: job.complete("y", None)):
            with pytest.raises(AppError) as ei:
                action()
            assert ei.value.code == INVALID_TRANSITION

    def test_complete_requires_processing(self):
        with pytest.raises(AppError):
            ProcessingJob("P1").complete("/o.xlsx", None)


# ══════════════════════════════════════════════════════════════════════════════
# AppendResult
# ══════════════════════════════════════════════════════════════════════════════

def test_append_result_ok_and_failed():
    ok = AppendResult.ok(3, 7, "/t.xlsx", ["w"])
    assert ok.success and ok.has_warnings
    assert ok.warnings == ("w",)
    assert "rows_added=3" in str(ok)

    bad = AppendResult.failed("FILE_LOCKED", "locked", "/t.xlsx")
    assert not bad.success
    assert bad.rows_added == 0
    assert str(bad) == "AppendResult[failed: locked]"
