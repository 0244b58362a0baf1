"""
smartfill/watcher.py — Single-folder run mode.

Polls one folder on a fixed interval and feeds every matching file through
parse -> create/append -> archive. The first file of a session creates the
target workbook; later files are appended to it while append mode is on.

Layout for a new target:
  <output>/<mapping name>/<yyyy-MM-dd_HHmmss>/<source stem>.xlsx
  <output>/<mapping name>/<yyyy-MM-dd_HHmmss>/archive/<source file>
Appended sources are moved to <target folder>/archive/.

When an append fails (target deleted, locked or unreadable) the source is left
in place, an "append_failed" event carries the AppendResult, and processing
pauses until the caller picks recreate_target(), retry_target() or stop().

Events (on_event(event, payload)):
  started, processing, created, appended, append_failed, archived, error, stopped
"""
from __future__ import annotations

import os
import threading
import time
from datetime import datetime
from typing import Any, Callable, List, Optional, Sequence, Set

from .appender import append, write_new
from .archive import archive_root, archive_source, format_timestamp
from .config import RunModeConfig
from .errors import AppError, BAD_CONFIG, WATCH_SCAN_FAILED
from .log import get_logger
from .models import ColumnMapping
from .stability import StabilityGate
from .textparse import parse_file

logger = get_logger(__name__)

EventCallback = Callable[[str, Any], None]


class SingleFolderWatcher:
    def __init__(
        self,
        config: RunModeConfig,
        mappings: Sequence[ColumnMapping],
        mapping_name: Optional[str] = None,
        on_event: Optional[EventCallback] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = datetime.now,
    ):
        config.validate()
        self.config = config
        self.mappings: List[ColumnMapping] = list(mappings)
        self.mapping_name = mapping_name or os.path.splitext(os.path.basename(config.mapping_file))[0] or "Mapping"
        self._on_event = on_event
        self._clock = clock
        self._extensions = config.extensions
        self._gate: Optional[StabilityGate] = None
        if config.stability_check_seconds > 0:
            self._gate = StabilityGate(config.stability_check_seconds, sleep)

        self._target: Optional[str] = config.last_generated_file_path if config.append_mode_enabled else None
        self._awaiting_decision = False

        self._in_flight: Set[str] = set()
        self._lock = threading.Lock()
        self._tick_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ── State ─────────────────────────────────────────────────────────────────

    @property
    def is_running(self) -> bool:
        return self._thread is not None

    @property
    def is_paused(self) -> bool:
        return self._awaiting_decision

    @property
    def target_path(self) -> Optional[str]:
        return self._target

    def _emit(self, event: str, payload: Any = None) -> None:
        if self._on_event is None:
            return
        try:
            self._on_event(event, payload)
        except Exception:
            logger.debug("Event listener failed for %r", event, exc_info=True)

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def start(self) -> None:
        if self.is_running:
            logger.info("Watcher already running: %s", self.config.watch_folder)
            return
        if not os.path.isdir(self.config.watch_folder):
            raise AppError(BAD_CONFIG, f"Watch folder does not exist: {self.config.watch_folder}",
                           {"path": self.config.watch_folder})

        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="smartfill-watcher", daemon=True)
        self._thread.start()
        logger.info("Started watching %s (pattern %s, every %ds, append mode %s)",
                    self.config.watch_folder, self.config.file_pattern,
                    self.config.interval_seconds, "on" if self.config.append_mode_enabled else "off")
        self._emit("started", {"folder": self.config.watch_folder})

    def stop(self) -> None:
        if not self.is_running:
            logger.info("Watcher not running")
            return
        self._stop.set()
        self._thread.join()
        self._thread = None
        logger.info("Stopped watching %s", self.config.watch_folder)
        self._emit("stopped", {"folder": self.config.watch_folder})

    def _run(self) -> None:
        while not self._stop.is_set():
            self.tick()
            if self._stop.wait(self.config.interval_seconds):
                break

    # ── Caller decisions after append_failed ──────────────────────────────────

    def recreate_target(self) -> None:
        """Forget the failed target; the next file starts a new workbook."""
        with self._lock:
            logger.info("Append target dropped: %s", self._target)
            self._target = None
            self.config.last_generated_file_path = None
            self._awaiting_decision = False

    def retry_target(self) -> None:
        """Resume appending to the same target on the next tick."""
        with self._lock:
            self._awaiting_decision = False

    # ── Scan ──────────────────────────────────────────────────────────────────

    def _list_candidates(self) -> List[str]:
        folder = self.config.watch_folder
        out = []
        for name in sorted(os.listdir(folder)):
            path = os.path.join(folder, name)
            if not os.path.isfile(path):
                continue
            dot = name.rfind(".")
            ext = name[dot + 1:].lower() if dot > 0 else ""
            if ext in self._extensions:
                out.append(path)
        return out

    def tick(self) -> int:
        """
        One scan of the watch folder. Returns the number of files processed.
        Runs on the worker thread; also callable directly.
        """
        with self._tick_lock:
            if self._awaiting_decision:
                logger.debug("Paused after append failure; waiting for a decision")
                return 0
            try:
                candidates = self._list_candidates()
            except OSError as e:
                logger.error("Error scanning folder %s: %s", self.config.watch_folder, e)
                self._emit("error", {"code": WATCH_SCAN_FAILED, "message": str(e)})
                return 0

            processed = 0
            for path in candidates:
                if self._stop.is_set() or self._awaiting_decision:
                    break
                with self._lock:
                    if path in self._in_flight:
                        continue
                    self._in_flight.add(path)
                try:
                    if self._process(path):
                        processed += 1
                except Exception as e:
                    logger.exception("Error processing %s", path)
                    self._emit("error", {"path": path, "message": str(e)})
                finally:
                    with self._lock:
                        self._in_flight.discard(path)
            return processed

    # ── Per-file pipeline ─────────────────────────────────────────────────────

    def _process(self, path: str) -> bool:
        name = os.path.basename(path)
        if self._gate is not None and not self._gate.is_stable(path):
            logger.debug("Still being written, retry next cycle: %s", name)
            return False

        logger.info("Processing: %s", name)
        self._emit("processing", {"path": path})

        table = parse_file(path)
        if not table:
            logger.warning("No data parsed from %s", name)

        if self.config.append_mode_enabled and self._target:
            return self._append(path, table)
        return self._create(path, table)

    def _append(self, path: str, table) -> bool:
        result = append(table, self.mappings, self._target)
        if not result.success:
            logger.error("Failed to append %s to %s: %s",
                         os.path.basename(path), self._target, result.error_message)
            self._awaiting_decision = True
            self._emit("append_failed", {"path": path, "result": result})
            return False

        for w in result.warnings:
            logger.warning(w)
        self._emit("appended", {"path": path, "result": result})

        archived = archive_source(path, os.path.dirname(result.target_file_path))
        self._emit("archived", {"path": path, "archived": archived})
        return True

    def _create(self, path: str, table) -> bool:
        stamp = format_timestamp(self._clock(), "datetime")
        folder = os.path.join(archive_root(self.config.output_folder, self.mapping_name), stamp)
        stem = os.path.splitext(os.path.basename(path))[0]
        output = os.path.join(folder, stem + ".xlsx")

        result = write_new(table, self.mappings, output)
        if not result.success:
            logger.error("Failed to create %s: %s", output, result.error_message)
            self._emit("error", {"path": path, "result": result})
            return False

        for w in result.warnings:
            logger.warning(w)
        if self.config.append_mode_enabled:
            self._target = result.target_file_path
            self.config.last_generated_file_path = result.target_file_path
            logger.info("Append target set to %s", result.target_file_path)
        self._emit("created", {"path": path, "result": result})

        archived = archive_source(path, folder)
        self._emit("archived", {"path": path, "archived": archived})
        return True

