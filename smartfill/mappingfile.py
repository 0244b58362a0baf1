"""
smartfill/mappingfile.py — Mapping file load / upgrade / save.

Accepted inputs:
  legacy array   [{"sourceColumn": 0, "startCell": "A1", "direction": "vertical",
                   "title": "...", "rowPattern": {"type": "odd", "start": 0}}, ...]
  v1 object      {"mappings": [...same entries...]}            (no schemaVersion)
  v2 object      {"schemaVersion": "2.0", "fileSlots": [...], "mappings": [
                   {"sourceFileSlot": 1, "sourceColumn": "B", "targetCell": "C3",
                    "direction": "VERTICAL", "title": "...", "rowIndexes": [0, 2]}],
                  "watchConfig": {...}, "archiveConfig": {...}}

Legacy and v1 input is upgraded in memory to v2 with one slot,
FileSlot(1, "Default Input"). Saving always writes v2.
"""
from __future__ import annotations

import json
import os
from typing import Any, Dict, List

from .errors import AppError, BAD_MAPPING
from .io import write_json_atomic
from .log import get_logger
from .models import (
    ArchiveConfig,
    ColumnMapping,
    ExplicitRows,
    FileSlot,
    MappingConfig,
    RowPattern,
    RowSelector,
    WatchConfig,
)
from .parsing import parse_cell_ref, parse_source_column, to_cell_ref

logger = get_logger(__name__)

SCHEMA_VERSION = "2.0"


def needs_upgrade(data: Any) -> bool:
    if isinstance(data, list):
        return True
    if isinstance(data, dict):
        version = data.get("schemaVersion")
        if version is None:
            return True
        return not str(version).startswith("2.")
    raise AppError(BAD_MAPPING, "Mapping file must contain a JSON array or object")


# ── Entry parsing ─────────────────────────────────────────────────────────────

def _parse_rows(entry: Dict[str, Any]) -> RowSelector:
    pattern = entry.get("rowPattern")
    if pattern is not None:
        if not isinstance(pattern, dict):
            raise AppError(BAD_MAPPING, f"rowPattern must be an object (got {pattern!r})")
        return RowPattern(str(pattern.get("type", "all")), int(pattern.get("start", 0)))
    indexes = entry.get("rowIndexes")
    if indexes is not None:
        if not isinstance(indexes, list):
            raise AppError(BAD_MAPPING, f"rowIndexes must be a list (got {indexes!r})")
        return ExplicitRows(tuple(int(i) for i in indexes))
    return RowPattern()


def _parse_entry(entry: Any, legacy: bool) -> ColumnMapping:
    if not isinstance(entry, dict):
        raise AppError(BAD_MAPPING, f"Mapping entry must be an object (got {entry!r})")

    cell = entry.get("targetCell", entry.get("startCell", "A1"))
    row, col = parse_cell_ref(str(cell))

    source = entry.get("sourceColumn", 0)
    title = entry.get("title")

    return ColumnMapping(
        source_column=parse_source_column(source),
        target_row=row,
        target_col=col,
        direction=str(entry.get("direction", "vertical")).strip().lower(),
        rows=_parse_rows(entry),
        title=str(title) if title not in (None, "") else None,
        source_file_slot=1 if legacy else int(entry.get("sourceFileSlot", 1)),
    )


def _parse_entries(entries: Any, legacy: bool) -> List[ColumnMapping]:
    if not isinstance(entries, list):
        raise AppError(BAD_MAPPING, "'mappings' must be a list")
    out = []
    for i, entry in enumerate(entries):
        try:
            out.append(_parse_entry(entry, legacy))
        except AppError as e:
            raise AppError(BAD_MAPPING, f"Mapping #{i + 1}: {e.message}", {"entry": entry})
        except (TypeError, ValueError) as e:
            raise AppError(BAD_MAPPING, f"Mapping #{i + 1}: {e}", {"entry": entry})
    return out


# ── Upgrade / v2 ──────────────────────────────────────────────────────────────

def upgrade_legacy(data: Any) -> MappingConfig:
    entries = data if isinstance(data, list) else data.get("mappings", [])
    config = MappingConfig.single_file(_parse_entries(entries, legacy=True))
    logger.info("Upgraded %d legacy mappings to schema %s", len(config.mappings), SCHEMA_VERSION)
    return config


def _parse_watch(data: Dict[str, Any]) -> WatchConfig:
    wc = WatchConfig(
        stability_check_seconds=int(data.get("stabilityCheckSeconds", 2)),
        matching_strategy=str(data.get("matchingStrategy", "prefix")).strip().lower(),
        max_stability_retries=int(data.get("maxStabilityRetries", 5)),
    )
    wc.validate()
    return wc


def _parse_archive(data: Dict[str, Any]) -> ArchiveConfig:
    fmt = str(data.get("timestampFormat", "datetime")).strip().lower()
    if fmt not in ("date_only", "datetime"):
        raise AppError(BAD_MAPPING, f"Bad timestamp format: {fmt!r}")
    return ArchiveConfig(
        output_folder=str(data.get("outputFolder", "")),
        timestamp_format=fmt,
        archive_input_files=bool(data.get("archiveInputFiles", True)),
    )


def parse_v2(data: Dict[str, Any]) -> MappingConfig:
    try:
        slots = [FileSlot(int(s["slot"]), str(s.get("description", ""))) for s in data.get("fileSlots", [])]
        watch = _parse_watch(data["watchConfig"]) if data.get("watchConfig") else None
        archive = _parse_archive(data["archiveConfig"]) if data.get("archiveConfig") else None
    except AppError as e:
        raise AppError(BAD_MAPPING, e.message)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise AppError(BAD_MAPPING, f"Bad mapping file structure: {e}")

    config = MappingConfig(
        schema_version=str(data.get("schemaVersion", SCHEMA_VERSION)),
        file_slots=slots or [FileSlot(1, "Default Input")],
        mappings=_parse_entries(data.get("mappings", []), legacy=False),
        watch_config=watch,
        archive_config=archive,
    )
    if len(config.file_slots) > 10:
        raise AppError(BAD_MAPPING, "Maximum 10 file slots allowed")
    return config


def config_from_data(data: Any) -> MappingConfig:
    if needs_upgrade(data):
        return upgrade_legacy(data)
    return parse_v2(data)


def load_mapping_json(path: str) -> MappingConfig:
    """Load any supported mapping file. An unreadable or malformed file raises AppError(BAD_MAPPING)."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except ValueError as e:
        raise AppError(BAD_MAPPING, f"Mapping file is not valid JSON: {e}", {"path": path})
    except OSError as e:
        raise AppError(BAD_MAPPING, f"Cannot read mapping file: {e.strerror or e}", {"path": path})
    return config_from_data(data)


def mapping_name(path: str) -> str:
    """Display name of a mapping file: its file name without extension."""
    return os.path.splitext(os.path.basename(path))[0]


# ── Save ──────────────────────────────────────────────────────────────────────

def _rows_to_dict(rows: RowSelector) -> Dict[str, Any]:
    if isinstance(rows, ExplicitRows):
        return {"rowIndexes": list(rows.indexes)}
    return {"rowPattern": {"type": rows.kind, "start": rows.start}}


def config_to_dict(config: MappingConfig) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "schemaVersion": SCHEMA_VERSION,
        "fileSlots": [{"slot": s.slot, "description": s.description} for s in config.file_slots],
        "mappings": [],
    }
    for m in config.mappings:
        entry: Dict[str, Any] = {
            "sourceFileSlot": m.source_file_slot,
            "sourceColumn": m.source_column,
            "targetCell": to_cell_ref(m.target_row, m.target_col),
            "direction": m.direction,
        }
        if m.title:
            entry["title"] = m.title
        entry.update(_rows_to_dict(m.rows))
        data["mappings"].append(entry)
    if config.watch_config is not None:
        wc = config.watch_config
        data["watchConfig"] = {
            "stabilityCheckSeconds": wc.stability_check_seconds,
            "matchingStrategy": wc.matching_strategy,
            "maxStabilityRetries": wc.max_stability_retries,
        }
    if config.archive_config is not None:
        ac = config.archive_config
        data["archiveConfig"] = {
            "outputFolder": ac.output_folder,
            "timestampFormat": ac.timestamp_format,
            "archiveInputFiles": ac.archive_input_files,
        }
    return data


def save_mapping_json(config: MappingConfig, path: str) -> None:
    write_json_atomic(path, config_to_dict(config))
