from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Literal, NamedTuple, Optional, Sequence, Tuple, Union

from .errors import AppError, BAD_CONFIG, BAD_MAPPING, BAD_SPEC, INVALID_SLOT, INVALID_TRANSITION


MIN_SLOT = 1
MAX_SLOT = 10

Direction = Literal["vertical", "horizontal"]
PatternKind = Literal["odd", "even", "all"]
MatchingStrategy = Literal["prefix", "exact_basename"]
TimestampFormat = Literal["date_only", "datetime"]


def check_slot(slot: int, what: str = "Slot") -> int:
    if isinstance(slot, bool) or not isinstance(slot, int) or not (MIN_SLOT <= slot <= MAX_SLOT):
        raise AppError(INVALID_SLOT, f"{what} must be between {MIN_SLOT} and {MAX_SLOT} (got {slot!r})")
    return slot


# ---- Parsed input ----

@dataclass(frozen=True)
class ParsedTable:
    """
    Rectangular-ish table of string cells produced by the text parser.
    Rows may differ in length; cell() pads short rows with "".
    """
    rows: Tuple[Tuple[str, ...], ...] = ()

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[str]]) -> "ParsedTable":
        return cls(tuple(tuple(r) for r in rows))

    def __len__(self) -> int:
        return len(self.rows)

    def __bool__(self) -> bool:
        return bool(self.rows)

    def row(self, index: int) -> Tuple[str, ...]:
        return self.rows[index]

    def cell(self, row: int, col: int) -> str:
        r = self.rows[row]
        return r[col] if 0 <= col < len(r) else ""

    def to_lists(self) -> List[List[str]]:
        return [list(r) for r in self.rows]


class CellWrite(NamedTuple):
    row: int     # 0-based
    col: int     # 0-based
    value: str


# ---- Mapping model ----

@dataclass(frozen=True)
class ExplicitRows:
    """Explicit ordered list of 0-based source row indexes."""
    indexes: Tuple[int, ...] = ()


@dataclass(frozen=True)
class RowPattern:
    """Generated selection: every row from start, or only odd/even 1-based row numbers."""
    kind: PatternKind = "all"
    start: int = 0

    def __post_init__(self):
        kind = str(self.kind).strip().lower()
        if kind not in ("odd", "even", "all"):
            raise AppError(BAD_SPEC, f"Bad row pattern type: {self.kind!r}")
        object.__setattr__(self, "kind", kind)
        if self.start < 0:
            raise AppError(BAD_SPEC, f"Row pattern start must be >= 0 (got {self.start})")


RowSelector = Union[ExplicitRows, RowPattern]


@dataclass(frozen=True)
class ColumnMapping:
    """
    One rule: source column -> anchor cell, filled along a direction.
    target_row/target_col are the 0-based anchor on a fresh sheet.
    """
    source_column: int
    target_row: int
    target_col: int
    direction: Direction = "vertical"
    rows: RowSelector = field(default_factory=RowPattern)
    title: Optional[str] = None
    source_file_slot: int = 1

    def __post_init__(self):
        if self.source_column < 0 or self.target_row < 0 or self.target_col < 0:
            raise AppError(
                BAD_MAPPING,
                "Source column and target cell must be >= 0",
                {"source_column": self.source_column, "target": (self.target_row, self.target_col)},
            )
        if self.direction not in ("vertical", "horizontal"):
            raise AppError(BAD_MAPPING, f"Bad direction: {self.direction!r}")
        if not (MIN_SLOT <= self.source_file_slot <= MAX_SLOT):
            raise AppError(BAD_MAPPING, f"Source file slot must be between 1 and 10 (got {self.source_file_slot})")

    @property
    def is_vertical(self) -> bool:
        return self.direction == "vertical"


@dataclass
class FileSlot:
    slot: int
    description: str = ""

    def __post_init__(self):
        check_slot(self.slot)


@dataclass
class WatchConfig:
    stability_check_seconds: int = 2
    matching_strategy: MatchingStrategy = "prefix"
    max_stability_retries: int = 5

    def validate(self) -> None:
        if not (1 <= self.stability_check_seconds <= 30):
            raise AppError(BAD_CONFIG, "Stability check must be between 1 and 30 seconds")
        if self.matching_strategy not in ("prefix", "exact_basename"):
            raise AppError(BAD_CONFIG, f"Bad matching strategy: {self.matching_strategy!r}")
        if self.max_stability_retries < 1:
            raise AppError(BAD_CONFIG, "Stability retries must be >= 1")


@dataclass
class ArchiveConfig:
    output_folder: str = ""
    timestamp_format: TimestampFormat = "datetime"
    archive_input_files: bool = True


@dataclass
class MappingConfig:
    """
    The mapping set: ordered mappings plus the file slots they read from.
    Legacy single-file mappings are upgraded into this shape with one slot.
    """
    schema_version: str = "2.0"
    file_slots: List[FileSlot] = field(default_factory=list)
    mappings: List[ColumnMapping] = field(default_factory=list)
    watch_config: Optional[WatchConfig] = None
    archive_config: Optional[ArchiveConfig] = None

    @classmethod
    def single_file(cls, mappings: Sequence[ColumnMapping] = ()) -> "MappingConfig":
        return cls(file_slots=[FileSlot(1, "Default Input")], mappings=list(mappings))

    @property
    def is_multi_file(self) -> bool:
        return len(self.file_slots) > 1

    @property
    def required_file_count(self) -> int:
        return len(self.file_slots)

    def add_file_slot(self, slot: FileSlot) -> None:
        if len(self.file_slots) >= MAX_SLOT:
            raise AppError(INVALID_SLOT, "Maximum 10 file slots allowed")
        self.file_slots.append(slot)

    def mappings_for_slot(self, slot: int) -> List[ColumnMapping]:
        return [m for m in self.mappings if m.source_file_slot == slot]


# ---- Watching ----

@dataclass
class WatchFolder:
    path: str
    linked_slot: int
    active: bool = False
    last_detected_file: Optional[str] = None

    def __post_init__(self):
        check_slot(self.linked_slot, "Linked slot")

    @property
    def has_file_ready(self) -> bool:
        return self.last_detected_file is not None


# ---- Jobs ----

PENDING    = "PENDING"
PROCESSING = "PROCESSING"
COMPLETED  = "COMPLETED"
FAILED     = "FAILED"


@dataclass
class ProcessingJob:
    """
    One multi-source batch: PENDING -> PROCESSING -> COMPLETED | FAILED.
    Terminal states are final.
    """
    match_key: str
    input_files: Dict[int, str] = field(default_factory=dict)
    status: str = PENDING
    output_file: Optional[str] = None
    archive_folder: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    error_message: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (COMPLETED, FAILED)

    def start_processing(self) -> None:
        if self.status != PENDING:
            raise AppError(INVALID_TRANSITION, f"Cannot start a job in state {self.status}")
        self.status = PROCESSING
        self.start_time = datetime.now()

    def complete(self, output_file: str, archive_folder: Optional[str]) -> None:
        if self.status != PROCESSING:
            raise AppError(INVALID_TRANSITION, f"Cannot complete a job in state {self.status}")
        self.status = COMPLETED
        self.output_file = output_file
        self.archive_folder = archive_folder
        self.end_time = datetime.now()

    def fail(self, error_message: str) -> None:
        if self.is_terminal:
            raise AppError(INVALID_TRANSITION, f"Cannot fail a job in state {self.status}")
        self.status = FAILED
        self.error_message = error_message
        self.end_time = datetime.now()


# ---- Run reporting ----

@dataclass(frozen=True)
class AppendResult:
    """
    Outcome of one create/append operation. Never mutated after construction.
    """
    success: bool
    rows_added: int = 0
    row_offset: int = 0
    target_file_path: Optional[str] = None
    warnings: Tuple[str, ...] = ()
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    @classmethod
    def ok(cls, rows_added: int, row_offset: int, target_file_path: str,
           warnings: Sequence[str] = ()) -> "AppendResult":
        return cls(True, rows_added, row_offset, target_file_path, tuple(warnings))

    @classmethod
    def failed(cls, error_code: str, error_message: str,
               target_file_path: Optional[str] = None) -> "AppendResult":
        return cls(False, 0, 0, target_file_path, (), error_code, error_message)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    def __str__(self) -> str:
        if self.success:
            return (f"AppendResult[success, rows_added={self.rows_added}, offset={self.row_offset}, "
                    f"target={self.target_file_path}, warnings={len(self.warnings)}]")
        return f"AppendResult[failed: {self.error_message}]"
