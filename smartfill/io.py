"""
smartfill/io.py — Workbook access check, open and save helpers, plus atomic text writes.

Workbook functions raise AppError with a stable code; the appender turns those
into AppendResult failures, the merge path lets them propagate to the batch job.
The text writers used for mapping and run-mode JSON raise plain OSError.
"""
from __future__ import annotations

import json
import os
import sys
import tempfile
from typing import Any, Callable

from openpyxl import Workbook, load_workbook
from openpyxl.worksheet.worksheet import Worksheet

from .errors import AppError, FILE_LOCKED, FILE_NOT_FOUND, MALFORMED_TARGET, SAVE_FAILED

if sys.platform != "win32":
    import fcntl
else:
    fcntl = None


DEFAULT_SHEET = "Result"


def check_access(path: str) -> None:
    """
    Confirm the target can be opened for read/write and is not held by another
    writer. On POSIX an exclusive non-blocking flock is taken and released.
    """
    if not os.path.exists(path):
        raise AppError(FILE_NOT_FOUND, f"Target file does not exist: {path}", {"path": path})
    try:
        with open(path, "r+b") as f:
            if fcntl is not None:
                fcntl.flock(f.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
    except BlockingIOError:
        raise AppError(
            FILE_LOCKED,
            f"Cannot access target file, it is locked by another program: {path}",
            {"path": path},
        )
    except PermissionError:
        raise AppError(
            FILE_LOCKED,
            f"Cannot access target file, it may be open in another program: {path}",
            {"path": path},
        )


def load_target(path: str) -> Workbook:
    """Load an existing workbook. Anything openpyxl cannot read is MALFORMED_TARGET."""
    try:
        return load_workbook(path)
    except PermissionError:
        raise AppError(
            FILE_LOCKED,
            f"Cannot access target file, it may be open in another program: {path}",
            {"path": path},
        )
    except Exception as e:
        raise AppError(
            MALFORMED_TARGET,
            f"Target is not a readable spreadsheet: {e}",
            {"path": path},
        )


def get_or_create_sheet(wb: Workbook, name: str = DEFAULT_SHEET) -> Worksheet:
    """Return the named sheet, creating it if absent. Cleans up the default blank sheet."""
    if name in wb.sheetnames:
        return wb[name]
    ws = wb.create_sheet(title=name)
    if len(wb.sheetnames) > 1 and "Sheet" in wb.sheetnames:
        default = wb["Sheet"]
        if default.max_row == 1 and default.max_column == 1 and default["A1"].value in (None, ""):
            wb.remove(default)
    return ws


def new_workbook(sheet_name: str = DEFAULT_SHEET) -> tuple:
    """Fresh workbook whose only sheet is sheet_name. Returns (wb, ws)."""
    wb = Workbook()
    ws = get_or_create_sheet(wb, sheet_name)
    return wb, ws


# ── Atomic writes ─────────────────────────────────────────────────────────────

def _replace_via_temp(path: str, suffix: str, write: Callable[[str], Any]) -> str:
    """
    Call write(tmp) on a temp file in the target's folder, then os.replace it
    over the target. The temp file never outlives a failed write.
    """
    target = os.path.abspath(path)
    folder = os.path.dirname(target)
    os.makedirs(folder, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=".smartfill-", suffix=suffix, dir=folder)
    os.close(fd)
    try:
        write(tmp)
        os.replace(tmp, target)
    except BaseException:
        try:
            os.remove(tmp)
        except OSError:
            pass
        raise
    return target


def save_workbook_atomic(wb: Workbook, path: str) -> str:
    """
    Save without ever leaving a half-written workbook at path.
    On failure the original is left untouched. Returns the absolute path written.
    """
    target = os.path.abspath(path)
    try:
        return _replace_via_temp(target, ".xlsx", wb.save)
    except PermissionError as e:
        raise AppError(
            FILE_LOCKED,
            f"Cannot save, access denied or file open in another program: {e}",
            {"path": target},
        )
    except Exception as e:
        raise AppError(SAVE_FAILED, f"Save failed: {e}", {"path": target})


def write_text_atomic(path: str, text: str, encoding: str = "utf-8") -> str:
    def _write(tmp: str) -> None:
        with open(tmp, "w", encoding=encoding) as f:
            f.write(text)

    return _replace_via_temp(path, ".tmp", _write)


def write_json_atomic(path: str, data: Any) -> str:
    """Mapping files and run-mode settings: indented JSON, replaced in one step."""
    return write_text_atomic(path, json.dumps(data, indent=2))
