"""
smartfill/textparse.py — Format-sniffing text report parser.

Three layouts are recognised by sampling the first lines of a file:

  grouped-block  — metrology feature reports: a feature header line such as
                   "Circle 1 (ID:12)" followed by "label = v1 v2 ..." lines.
  fixed-column   — machine exports with numbered "N..." records and a run of
                   asterisks; sliced by configured column widths.
  flat-table     — anything else; cells separated by two or more spaces.

Dispatch is an ordered list of (predicate, parser) pairs; the first predicate
that accepts the sample wins and flat-table is the catch-all.

load_table raises AppError(PARSE_FAILED) when a file cannot be read or parsed.
parse_file wraps it for the run loops: it logs the failure and returns an
empty table, which callers treat as "nothing to process".
"""
from __future__ import annotations

import json
import os
import re
from collections import OrderedDict
from typing import Callable, List, Optional, Sequence, Tuple

from .errors import AppError, PARSE_FAILED
from .log import get_logger
from .models import ParsedTable

logger = get_logger(__name__)


SAMPLE_LINES = 10
GROUPED_WIDTH = 7
FLAT_WIDTH = 8

COLUMN_CONFIG_NAME = "column_config.json"
ENV_COLUMN_CONFIG = "SMARTFILL_COLUMN_CONFIG"

GROUPED_HEADER = ("Element", "Actual", "Nominal", "Deviat.", "Up Tol.", "Low Tol.", "Pass/Fail")

FALLBACK_COLUMN_WIDTHS: "OrderedDict[str, int]" = OrderedDict([
    ("Col1", 3),
    ("Col2", 6),
    ("Col3", 9),
    ("Col4", 4),
    ("Col5", 11),
    ("Col6", 11),
    ("Col7", 11),
    ("Col8", 11),
    ("Col9", 12),
])

_BLOCK_HEADER_RE = re.compile(r"(Circle|Line|Plane|Point|Distance|Angle).*\(ID:.*\).*", re.IGNORECASE)
_FIXED_ROW_RE = re.compile(r"\s*\d+\s+N\d+\s+.*\s+\*+.*")
_CELL_GAP_RE = re.compile(r"\s{2,}")


# ── Column width config ───────────────────────────────────────────────────────

def _read_widths(path: str) -> "OrderedDict[str, int]":
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f, object_pairs_hook=OrderedDict)
    if not isinstance(data, dict) or not data:
        raise ValueError("column config must be a non-empty JSON object")
    widths: "OrderedDict[str, int]" = OrderedDict()
    for name, width in data.items():
        w = int(width)
        if w <= 0:
            raise ValueError(f"column width for {name!r} must be > 0")
        widths[name] = w
    return widths


def load_column_widths(
    config_path: Optional[str] = None,
    source_path: Optional[str] = None,
) -> "OrderedDict[str, int]":
    """
    Ordered column-name -> width map for the fixed-column parser.

    Lookup order: explicit config_path, SMARTFILL_COLUMN_CONFIG env var,
    column_config.json beside the source file, column_config.json in the
    working directory. Missing or unreadable config falls back to the built-in
    9-column table.
    """
    candidates: List[str] = []
    if config_path:
        candidates.append(config_path)
    env = os.getenv(ENV_COLUMN_CONFIG)
    if env:
        candidates.append(env)
    if source_path:
        candidates.append(os.path.join(os.path.dirname(os.path.abspath(source_path)), COLUMN_CONFIG_NAME))
    candidates.append(os.path.join(os.getcwd(), COLUMN_CONFIG_NAME))

    for path in candidates:
        if not os.path.isfile(path):
            continue
        try:
            return _read_widths(path)
        except (OSError, ValueError, TypeError) as e:
            logger.warning("Failed to load column config %s (%s); using fallback widths", path, e)
            break

    return OrderedDict(FALLBACK_COLUMN_WIDTHS)


# ── Format parsers ────────────────────────────────────────────────────────────

def parse_grouped_block(lines: Sequence[str]) -> List[List[str]]:
    result: List[List[str]] = [list(GROUPED_HEADER)]
    current_header: Optional[str] = None

    for raw in lines:
        line = raw.strip()
        if not line:
            continue
        if _BLOCK_HEADER_RE.fullmatch(line):
            current_header = line
            continue
        if current_header is None or "=" not in line:
            continue

        parts = line.split("=")
        label = parts[0].strip()
        values_part = parts[1].strip() if len(parts) > 1 else ""
        values = values_part.split() if values_part else []

        row = [f"{current_header} → {label}"] + values
        row.extend([""] * (GROUPED_WIDTH - len(row)))
        result.append(row)

    return result


def parse_fixed_column(lines: Sequence[str], widths: Sequence[int]) -> List[List[str]]:
    result: List[List[str]] = []
    for line in lines:
        row = []
        cursor = 0
        for width in widths:
            if cursor >= len(line):
                row.append("")
            else:
                row.append(line[cursor:cursor + width].strip())
            cursor += width
        result.append(row)
    return result


def parse_flat_table(lines: Sequence[str]) -> List[List[str]]:
    result: List[List[str]] = []
    for raw in lines:
        line = raw.strip()
        if not line:
            continue
        row = [part.strip() for part in _CELL_GAP_RE.split(line)]
        row.extend([""] * (FLAT_WIDTH - len(row)))
        result.append(row)
    return result


# ── Sniffing ──────────────────────────────────────────────────────────────────

def is_grouped_block(sample: Sequence[str]) -> bool:
    return any(_BLOCK_HEADER_RE.fullmatch(line) for line in sample)


def is_fixed_column(sample: Sequence[str]) -> bool:
    return any(_FIXED_ROW_RE.fullmatch(line) for line in sample)


Parser = Callable[[Sequence[str], "OrderedDict[str, int]"], List[List[str]]]

FORMATS: List[Tuple[str, Callable[[Sequence[str]], bool], Parser]] = [
    ("grouped-block", is_grouped_block, lambda lines, widths: parse_grouped_block(lines)),
    ("fixed-column", is_fixed_column, lambda lines, widths: parse_fixed_column(lines, list(widths.values()))),
    ("flat-table", lambda sample: True, lambda lines, widths: parse_flat_table(lines)),
]


def detect_format(lines: Sequence[str]) -> str:
    sample = list(lines[:SAMPLE_LINES])
    for name, predicate, _ in FORMATS:
        if predicate(sample):
            return name
    return "flat-table"


def parse_lines(
    lines: Sequence[str],
    widths: Optional["OrderedDict[str, int]"] = None,
) -> ParsedTable:
    """Dispatch already-split lines to the first matching format parser."""
    sample = list(lines[:SAMPLE_LINES])
    for name, predicate, parser in FORMATS:
        if predicate(sample):
            if name == "fixed-column" and widths is None:
                widths = load_column_widths()
            return ParsedTable.from_rows(parser(lines, widths or OrderedDict()))
    return ParsedTable()


def parse_text(text: str, widths: Optional["OrderedDict[str, int]"] = None) -> ParsedTable:
    return parse_lines(text.splitlines(), widths)


def load_table(path: str, column_config_path: Optional[str] = None) -> ParsedTable:
    """Parse a text export into a ParsedTable, raising AppError(PARSE_FAILED) on failure."""
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            lines = f.read().splitlines()
    except OSError as e:
        raise AppError(PARSE_FAILED, f"Cannot read input file: {e.strerror or e}", {"path": path})

    try:
        widths = None
        if is_fixed_column(lines[:SAMPLE_LINES]) and not is_grouped_block(lines[:SAMPLE_LINES]):
            widths = load_column_widths(column_config_path, source_path=path)
        table = parse_lines(lines, widths)
    except Exception as e:
        raise AppError(PARSE_FAILED, f"Cannot parse input file: {e}", {"path": path})
    logger.debug("Parsed %s as %s: %d rows", path, detect_format(lines), len(table))
    return table


def parse_file(path: str, column_config_path: Optional[str] = None) -> ParsedTable:
    """Like load_table, but a failure is logged and yields an empty table."""
    try:
        return load_table(path, column_config_path)
    except AppError as e:
        logger.error("Failed to parse %s: %s", path, e.message)
        return ParsedTable()
