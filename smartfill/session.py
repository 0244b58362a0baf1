"""
smartfill/session.py — Run-mode session.

A RunSession owns whatever is running (one SingleFolderWatcher, or one
MultiSlotWatchCoordinator plus its batch worker) and the license decision.
The license gate is evaluated once, before the first watcher starts; a denial
raises AppError(LICENSE_DENIED) and nothing is started.

Batches from the coordinator are processed on a single worker thread, so two
batches never run at the same time.
"""
from __future__ import annotations

import threading
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Deque, List, Mapping, NamedTuple, Optional, Sequence

from .batch import process_batch
from .config import RunModeConfig
from .coordinator import MultiSlotWatchCoordinator
from .errors import AppError, BAD_CONFIG, LICENSE_DENIED
from .log import get_logger
from .mappingfile import load_mapping_json, mapping_name as mapping_file_name
from .models import ColumnMapping, MappingConfig, ProcessingJob
from .watcher import SingleFolderWatcher

logger = get_logger(__name__)

EventCallback = Callable[[str, Any], None]


class LicenseDecision(NamedTuple):
    allowed: bool
    message: str = ""


def allow_all() -> LicenseDecision:
    return LicenseDecision(True, "")


class RunSession:
    def __init__(
        self,
        license_gate: Callable[[], LicenseDecision] = allow_all,
        on_event: Optional[EventCallback] = None,
        config_path: Optional[str] = None,
        job_history: int = 100,
    ):
        self._license_gate = license_gate
        self._license: Optional[LicenseDecision] = None
        self._on_event = on_event
        self._config_path = config_path

        self.watcher: Optional[SingleFolderWatcher] = None
        self.coordinator: Optional[MultiSlotWatchCoordinator] = None
        self._batch_worker: Optional[ThreadPoolExecutor] = None
        # finished jobs only; older entries fall off the left
        self._jobs: Deque[ProcessingJob] = deque(maxlen=job_history)
        self._lock = threading.Lock()

    # ── License ───────────────────────────────────────────────────────────────

    def check_license(self) -> LicenseDecision:
        if self._license is None:
            self._license = self._license_gate()
            logger.info("License %s", "accepted" if self._license.allowed else "denied")
        if not self._license.allowed:
            raise AppError(LICENSE_DENIED, self._license.message or "License check failed")
        return self._license

    @property
    def is_running(self) -> bool:
        return self.watcher is not None or self.coordinator is not None

    def _emit(self, event: str, payload: Any) -> None:
        if self._on_event is None:
            return
        try:
            self._on_event(event, payload)
        except Exception:
            logger.debug("Session listener failed for %r", event, exc_info=True)

    def _ensure_idle(self) -> None:
        if self.is_running:
            raise AppError(BAD_CONFIG, "A run is already active; stop it first")

    # ── Single-folder mode ────────────────────────────────────────────────────

    def start_single(
        self,
        config: RunModeConfig,
        mappings: Optional[Sequence[ColumnMapping]] = None,
    ) -> SingleFolderWatcher:
        self.check_license()
        self._ensure_idle()

        name = None
        if mappings is None:
            mapping_config = load_mapping_json(config.mapping_file)
            mappings = mapping_config.mappings
            name = mapping_file_name(config.mapping_file)

        def _on_watch_event(event: str, payload: Any) -> None:
            if event == "created" and self._config_path:
                try:
                    config.save_json(self._config_path)
                except OSError as e:
                    logger.warning("Could not persist run-mode config: %s", e)
            self._emit(event, payload)

        watcher = SingleFolderWatcher(config, mappings, mapping_name=name, on_event=_on_watch_event)
        watcher.start()
        self.watcher = watcher
        return watcher

    # ── Multi-folder mode ─────────────────────────────────────────────────────

    def start_multi(
        self,
        mapping_config: MappingConfig,
        folders: Mapping[int, str],
        output_root: str,
        mapping_name: Optional[str] = None,
        stability_window: Optional[float] = None,
    ) -> MultiSlotWatchCoordinator:
        self.check_license()
        self._ensure_idle()

        def _on_coord_event(event: str, payload: Any) -> None:
            self._emit(event, payload)
            if event == "batch_ready":
                self._submit_batch(payload["match_key"], payload["files"],
                                   mapping_config, output_root, mapping_name)

        coordinator = MultiSlotWatchCoordinator(
            mapping_config.watch_config,
            on_event=_on_coord_event,
            stability_window=stability_window,
        )
        for slot, path in sorted(folders.items()):
            coordinator.add_watch_folder(slot, path)

        self._batch_worker = ThreadPoolExecutor(max_workers=1, thread_name_prefix="smartfill-batch")
        try:
            coordinator.start()
        except AppError:
            self._batch_worker.shutdown(wait=False)
            self._batch_worker = None
            raise
        self.coordinator = coordinator
        return coordinator

    def _submit_batch(self, match_key, files, mapping_config, output_root, mapping_name) -> None:
        with self._lock:
            if self._batch_worker is None:
                logger.info("Batch %s arrived after stop; ignored", match_key)
                return
            future = self._batch_worker.submit(
                process_batch, match_key, files, mapping_config, output_root, mapping_name, self._emit
            )
        future.add_done_callback(self._record_job)

    def _record_job(self, future: Future) -> None:
        if future.cancelled():
            return
        if future.exception() is not None:
            logger.error("Batch worker failed: %s", future.exception())
            return
        with self._lock:
            self._jobs.append(future.result())

    @property
    def jobs(self) -> List[ProcessingJob]:
        """The most recent finished batch jobs, oldest first."""
        with self._lock:
            return list(self._jobs)

    # ── Stop ──────────────────────────────────────────────────────────────────

    def stop(self) -> None:
        if self.watcher is not None:
            self.watcher.stop()
            self.watcher = None
        if self.coordinator is not None:
            self.coordinator.stop()
            self.coordinator = None
        with self._lock:
            worker, self._batch_worker = self._batch_worker, None
        if worker is not None:
            worker.shutdown(wait=True)
        logger.info("Run session stopped")
