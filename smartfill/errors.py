from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class AppError(Exception):
    """
    User-facing error with a short code and structured details.
    Raised for configuration-time contract violations; runtime failures of the
    append path are reported through AppendResult instead.
    """
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:
        if self.details:
            return f"{self.code}: {self.message} ({self.details})"
        return f"{self.code}: {self.message}"


# ── Error codes (keep stable for tests and callers) ───────────────────────────

PARSE_FAILED       = "PARSE_FAILED"
FILE_NOT_FOUND     = "FILE_NOT_FOUND"
FILE_LOCKED        = "FILE_LOCKED"
MALFORMED_TARGET   = "MALFORMED_TARGET"
SAVE_FAILED        = "SAVE_FAILED"
BAD_SPEC           = "BAD_SPEC"
BAD_MAPPING        = "BAD_MAPPING"
BAD_CONFIG         = "BAD_CONFIG"
INVALID_SLOT       = "INVALID_SLOT"
INVALID_TRANSITION = "INVALID_TRANSITION"
LICENSE_DENIED     = "LICENSE_DENIED"
WATCH_SCAN_FAILED  = "WATCH_SCAN_FAILED"


# ── Friendly message lookup ───────────────────────────────────────────────────

def _fname(e: AppError) -> str:
    if e.details and "path" in e.details:
        return f" ({os.path.basename(str(e.details['path']))})"
    return ""


def friendly_message(e: AppError) -> str:
    """
    Return a plain-English one-liner suitable for an operator log or dialog.
    Never exposes raw tracebacks or internal code paths.
    """
    code = e.code
    msg  = e.message or ""

    if code == FILE_LOCKED:
        return f"File is open in another program{_fname(e)}. Close it and try again."

    if code == FILE_NOT_FOUND:
        return f"File does not exist{_fname(e)}. It may have been moved or deleted."

    if code == MALFORMED_TARGET:
        return f"The target file is not a readable spreadsheet{_fname(e)}. Choose a different file or create a new one."

    if code == SAVE_FAILED:
        if "permission" in msg.lower() or "locked" in msg.lower() or "access" in msg.lower():
            return f"Could not save, the file is open in another program{_fname(e)}. Close it and try again."
        return f"Could not save the output file{_fname(e)}. Check that the path is valid and the folder exists."

    if code == PARSE_FAILED:
        return f"Could not read the input file{_fname(e)}. Nothing was processed.\n({msg})"

    if code == BAD_SPEC:
        if "row" in msg.lower():
            return f"Invalid row selection. Use odd, even or all with a start index of 0 or more.\n({msg})"
        return f"Invalid setting, please check your configuration.\n({msg})"

    if code == BAD_MAPPING:
        return f"The mapping file has an invalid entry. Check source columns and target cells.\n({msg})"

    if code == BAD_CONFIG:
        return f"Invalid run mode setting.\n({msg})"

    if code == INVALID_SLOT:
        return f"Watch folders must use slots 1 to 10 and point to an existing folder.\n({msg})"

    if code == LICENSE_DENIED:
        return msg or "This installation is not licensed to run."

    if code == WATCH_SCAN_FAILED:
        return f"Could not scan the watch folder. Watching continues.\n({msg})"

    # fallback: first line of the raw message only
    clean = msg.splitlines()[0] if msg else "An unexpected error occurred."
    return clean
