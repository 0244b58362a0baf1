"""
test_errors.py — AppError formatting and friendly_message().

Every code must produce a readable plain-English message with no raw
tracebacks.
"""
from __future__ import annotations

import pytest

from smartfill.errors import (
    AppError,
    friendly_message,
    BAD_CONFIG,
    BAD_MAPPING,
    BAD_SPEC,
    FILE_LOCKED,
    FILE_NOT_FOUND,
    INVALID_SLOT,
    LICENSE_DENIED,
    MALFORMED_TARGET,
    PARSE_FAILED,
    SAVE_FAILED,
    WATCH_SCAN_FAILED,
)


def test_app_error_str_includes_code_message():
    e = AppError("X", "Nope")
    assert str(e).startswith("X: Nope")


def test_app_error_str_includes_details_when_present():
    e = AppError("X", "Nope", {"a": 1})
    s = str(e)
    assert "X: Nope" in s
    assert "a" in s


def test_app_error_is_raisable():
    with pytest.raises(AppError) as ei:
        raise AppError(BAD_CONFIG, "bad")
    assert ei.value.code == BAD_CONFIG


def test_file_locked_message_mentions_program():
    e = AppError(FILE_LOCKED, "File is locked", {"path": "/data/output.xlsx"})
    msg = friendly_message(e)
    assert "open in another program" in msg
    assert "output.xlsx" in msg


def test_file_locked_message_no_path():
    msg = friendly_message(AppError(FILE_LOCKED, "File is locked"))
    assert "open in another program" in msg


def test_file_not_found_mentions_deleted():
    msg = friendly_message(AppError(FILE_NOT_FOUND, "gone", {"path": "/x/target.xlsx"}))
    assert "target.xlsx" in msg
    assert "deleted" in msg


def test_save_failed_permission_mentions_close():
    e = AppError(SAVE_FAILED, "PermissionError: access denied", {"path": "out.xlsx"})
    assert "close" in friendly_message(e).lower()


def test_save_failed_generic_message():
    msg = friendly_message(AppError(SAVE_FAILED, "disk full", {"path": "out.xlsx"}))
    assert "save" in msg.lower()


def test_bad_spec_row_hint():
    msg = friendly_message(AppError(BAD_SPEC, "Bad row pattern type: 'prime'"))
    assert "odd, even or all" in msg


def test_license_denied_uses_message():
    assert friendly_message(AppError(LICENSE_DENIED, "Licence expired")) == "Licence expired"
    assert friendly_message(AppError(LICENSE_DENIED, ""))


@pytest.mark.parametrize("code", [
    MALFORMED_TARGET, PARSE_FAILED, BAD_MAPPING, BAD_CONFIG, INVALID_SLOT, WATCH_SCAN_FAILED,
])
def test_every_code_has_a_message(code):
    msg = friendly_message(AppError(code, "detail"))
    assert msg
    assert "Traceback" not in msg


def test_unknown_code_uses_first_line_only():
    e = AppError("WEIRD", "first line\nTraceback (most recent call last):\n  boom")
    assert friendly_message(e) == "first line"
