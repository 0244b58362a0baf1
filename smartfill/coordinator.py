"""
smartfill/coordinator.py — Multi-folder run mode.

Each watched folder feeds one file slot. Filesystem events arrive from a
watchdog Observer; its handler threads only enqueue (slot, path). One loop
thread drains the queue and hands each path to a thread pool, where the
blocking stability check runs. A stable file becomes the slot's ready file.
When every slot has a ready file and all of them share a match key, a
"batch_ready" event is emitted with {match_key, files} and the ready state is
cleared for the next batch.

Events (on_event(event, payload)):
  started, file_ready, batch_ready, stopped
"""
from __future__ import annotations

import os
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .errors import AppError, BAD_CONFIG, INVALID_SLOT
from .log import get_logger
from .matching import find_common_match_key
from .models import WatchConfig, WatchFolder, check_slot
from .stability import StabilityGate

logger = get_logger(__name__)

EventCallback = Callable[[str, Any], None]

POLL_TIMEOUT = 0.2


class _SlotEventHandler(FileSystemEventHandler):
    """Forwards file events of one watched folder into the coordinator queue."""

    def __init__(self, slot: int, folder: str, sink: "queue.Queue[Tuple[int, str]]"):
        self.slot = slot
        self.folder = os.path.normcase(os.path.realpath(folder))
        self.sink = sink

    def _put(self, path) -> None:
        path = os.fsdecode(path)
        if os.path.normcase(os.path.realpath(os.path.dirname(path))) == self.folder:
            self.sink.put((self.slot, path))

    def on_created(self, event):
        if not event.is_directory:
            self._put(event.src_path)

    def on_modified(self, event):
        if not event.is_directory:
            self._put(event.src_path)

    def on_moved(self, event):
        if not event.is_directory:
            self._put(event.dest_path)


class MultiSlotWatchCoordinator:
    def __init__(
        self,
        watch_config: Optional[WatchConfig] = None,
        on_event: Optional[EventCallback] = None,
        stability_window: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.watch_config = watch_config or WatchConfig()
        self.watch_config.validate()
        window = stability_window if stability_window is not None else self.watch_config.stability_check_seconds
        self._gate = StabilityGate(window, sleep)
        self._on_event = on_event

        self._folders: Dict[int, WatchFolder] = {}
        self._ready: Dict[int, str] = {}
        self._checking: Set[str] = set()
        self._generation = 0
        self._lock = threading.RLock()

        self._queue: "queue.Queue[Tuple[int, str]]" = queue.Queue()
        self._stop = threading.Event()
        self._observer: Optional[Observer] = None
        self._loop_thread: Optional[threading.Thread] = None
        self._pool: Optional[ThreadPoolExecutor] = None

    # ── Configuration ─────────────────────────────────────────────────────────

    def add_watch_folder(self, slot: int, path: str) -> WatchFolder:
        check_slot(slot)
        if not os.path.isdir(path):
            raise AppError(INVALID_SLOT, f"Watch folder for slot {slot} does not exist: {path}", {"path": path})
        with self._lock:
            if self.is_watching:
                raise AppError(BAD_CONFIG, "Cannot add watch folders while watching")
            folder = WatchFolder(os.path.abspath(path), slot)
            self._folders[slot] = folder
        logger.info("Slot %d watches %s", slot, folder.path)
        return folder

    def remove_watch_folder(self, slot: int) -> None:
        with self._lock:
            self._folders.pop(slot, None)
            self._ready.pop(slot, None)

    @property
    def watch_folders(self) -> List[WatchFolder]:
        with self._lock:
            return [self._folders[s] for s in sorted(self._folders)]

    @property
    def ready_files(self) -> Dict[int, str]:
        with self._lock:
            return dict(self._ready)

    @property
    def is_watching(self) -> bool:
        return self._observer is not None

    def _emit(self, event: str, payload: Any = None) -> None:
        if self._on_event is None:
            return
        try:
            self._on_event(event, payload)
        except Exception:
            logger.debug("Event listener failed for %r", event, exc_info=True)

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def start(self) -> None:
        if self.is_watching:
            logger.info("Coordinator already watching")
            return
        if not self._folders:
            raise AppError(BAD_CONFIG, "No watch folders configured")

        self._stop.clear()
        # one worker per slot: every slot can be mid-check at the same time
        self._pool = ThreadPoolExecutor(max_workers=max(len(self._folders), 1),
                                        thread_name_prefix="smartfill-check")
        observer = Observer()
        for folder in self.watch_folders:
            observer.schedule(_SlotEventHandler(folder.linked_slot, folder.path, self._queue),
                              folder.path, recursive=False)
            folder.active = True
        observer.start()
        self._observer = observer

        self._loop_thread = threading.Thread(target=self._loop, name="smartfill-coordinator", daemon=True)
        self._loop_thread.start()
        logger.info("Watching %d folders", len(self._folders))
        self._emit("started", {"slots": sorted(self._folders)})

    def stop(self) -> None:
        if not self.is_watching:
            logger.info("Coordinator not watching")
            return
        with self._lock:
            self._generation += 1

        self._stop.set()
        self._observer.stop()
        self._observer.join()
        self._observer = None
        self._loop_thread.join()
        self._loop_thread = None
        self._pool.shutdown(wait=True)
        self._pool = None

        with self._lock:
            for folder in self._folders.values():
                folder.active = False
                folder.last_detected_file = None
            self._ready.clear()
            self._checking.clear()
        while not self._queue.empty():
            self._queue.get_nowait()

        logger.info("Coordinator stopped")
        self._emit("stopped", None)

    # ── Event loop ────────────────────────────────────────────────────────────

    def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                slot, path = self._queue.get(timeout=POLL_TIMEOUT)
            except queue.Empty:
                continue
            try:
                self._submit(slot, path)
            except Exception:
                logger.exception("Failed to schedule check for %s", path)

    def _submit(self, slot: int, path: str) -> None:
        if not os.path.isfile(path):
            return
        with self._lock:
            if slot not in self._folders or path in self._checking or self._pool is None:
                return
            self._checking.add(path)
            generation = self._generation
            pool = self._pool
        pool.submit(self._check, slot, path, generation)

    def _check(self, slot: int, path: str, generation: int) -> None:
        try:
            stable = self._gate.wait_for_stability(path, self.watch_config.max_stability_retries)
        except Exception:
            logger.exception("Stability check failed for %s", path)
            stable = False
        finally:
            with self._lock:
                self._checking.discard(path)

        if not stable:
            return
        with self._lock:
            if generation != self._generation:
                logger.debug("Discarding check finished after stop: %s", path)
                return
        self.mark_ready(slot, path)

    def check_file(self, slot: int, path: str) -> bool:
        """Run the stability check inline and mark the file ready when it passes."""
        if not self._gate.wait_for_stability(path, self.watch_config.max_stability_retries):
            return False
        self.mark_ready(slot, path)
        return True

    # ── Ready state ───────────────────────────────────────────────────────────

    def mark_ready(self, slot: int, path: str) -> Optional[Tuple[str, Dict[int, str]]]:
        """
        Record path as the slot's ready file (replacing any earlier one) and
        emit a batch when every slot is ready under one match key.
        Returns (match_key, files) when a batch was emitted.
        """
        batch = None
        with self._lock:
            folder = self._folders.get(slot)
            if folder is None:
                logger.warning("File for unknown slot %d ignored: %s", slot, path)
                return None
            self._ready[slot] = path
            folder.last_detected_file = path

            if len(self._ready) == len(self._folders):
                key = find_common_match_key(self._ready, self.watch_config.matching_strategy)
                if key is not None:
                    batch = (key, dict(self._ready))
                    self._ready.clear()
                    for f in self._folders.values():
                        f.last_detected_file = None
                else:
                    logger.info("All slots ready but match keys differ; waiting")

        logger.info("Slot %d ready: %s", slot, os.path.basename(path))
        self._emit("file_ready", {"slot": slot, "path": path})
        if batch is not None:
            key, files = batch
            logger.info("Batch ready: %s (%d files)", key, len(files))
            self._emit("batch_ready", {"match_key": key, "files": files})
        return batch
