"""Periodic and on-demand capture of dirty workspace files."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable

from ..config import SnapshotConfig
from ..snapshots import (
    DirtySetTracker,
    NoWorkspaceError,
    SnapshotRecord,
    SnapshotStore,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)

CaptureListener = Callable[[SnapshotRecord], None]


class SchedulerState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class SnapshotManager:
    """Own the dirty set, the snapshot store and the capture timer for one workspace.

    Capture cycles are serialized on a single lock. A trigger that arrives
    while a cycle is running waits for it and then captures whatever was
    recorded in the meantime; nothing is drained before the lock is held.
    Cycles run as their own tasks so that cancelling the timer, or a caller,
    never interrupts a capture halfway.
    """

    def __init__(
        self,
        workspace: Path | None,
        config: SnapshotConfig | None = None,
        *,
        journal: Any | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._workspace = Path(workspace) if workspace is not None else None
        self._config = config or SnapshotConfig()
        self._journal = journal
        self._clock = clock
        self._tracker: DirtySetTracker | None = None
        self._store: SnapshotStore | None = None
        if self._workspace is not None:
            self._tracker = DirtySetTracker(
                self._workspace,
                snapshot_folder=self._config.snapshot_folder_name,
                exclude_dirs=self._config.exclude_dirs,
            )
            self._store = self._build_store(self._workspace, self._config)
        else:
            logger.warning("No workspace open; snapshots are disabled")

        self._lock = asyncio.Lock()
        self._timer: asyncio.Task | None = None
        self._cycles: set[asyncio.Task] = set()
        self._state = SchedulerState.STOPPED
        self._disposed = False
        self._listeners: list[CaptureListener] = []

        self.last_capture: SnapshotRecord | None = None
        self.last_error: str | None = None
        self.capture_count = 0

    def _build_store(self, workspace: Path, config: SnapshotConfig) -> SnapshotStore:
        return SnapshotStore(workspace, folder_name=config.snapshot_folder_name, clock=self._clock)

    @property
    def workspace(self) -> Path | None:
        return self._workspace

    @property
    def config(self) -> SnapshotConfig:
        return self._config

    @property
    def tracker(self) -> DirtySetTracker | None:
        return self._tracker

    @property
    def store(self) -> SnapshotStore | None:
        return self._store

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def add_capture_listener(self, listener: CaptureListener) -> None:
        self._listeners.append(listener)

    # Change notifications -------------------------------------------------

    def record_change(self, path: str) -> bool:
        if self._tracker is None:
            return False
        return self._tracker.record_change(path)

    def record_save(self, path: str) -> bool:
        if self._tracker is None:
            return False
        return self._tracker.record_save(path)

    # Lifecycle ------------------------------------------------------------

    def start(self) -> SchedulerState:
        """Begin periodic capture if a workspace is open and snapshots are enabled."""

        if self._disposed:
            raise RuntimeError("SnapshotManager has been stopped")
        if self._store is not None:
            self._store.discard_partial()
        self._restart_timer()
        return self._state

    def reconfigure(self, config: SnapshotConfig) -> SchedulerState:
        """Apply new options and restart the timer with them."""

        if self._disposed:
            return self._state
        previous = self._config
        self._config = config
        if self._tracker is not None:
            self._tracker.set_exclusions(
                snapshot_folder=config.snapshot_folder_name,
                exclude_dirs=config.exclude_dirs,
            )
        if self._workspace is not None and config.snapshot_folder_name != previous.snapshot_folder_name:
            self._store = self._build_store(self._workspace, config)
        logger.info(
            "Snapshot configuration changed",
            extra={
                "enable": config.enable,
                "interval_minutes": config.snapshot_interval_minutes,
                "max_snapshots": config.max_snapshots,
                "folder": config.snapshot_folder_name,
            },
        )
        self._restart_timer()
        return self._state

    async def stop(self) -> None:
        """Cancel future ticks and wait for any capture already under way."""

        self._disposed = True
        await self._cancel_timer()
        self._state = SchedulerState.STOPPED
        if self._cycles:
            await asyncio.gather(*list(self._cycles), return_exceptions=True)

    def _restart_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if not self._config.enable or self._store is None:
            self._state = SchedulerState.STOPPED
            return
        interval = self._config.interval_seconds
        self._timer = asyncio.get_running_loop().create_task(self._tick_loop(interval))
        self._state = SchedulerState.RUNNING
        logger.debug("Snapshot timer started", extra={"interval_seconds": interval})

    async def _cancel_timer(self) -> None:
        timer, self._timer = self._timer, None
        if timer is None:
            return
        timer.cancel()
        try:
            await timer
        except asyncio.CancelledError:
            pass

    async def _tick_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self._run_detached()
            except Exception:
                logger.exception("Scheduled snapshot cycle failed")

    # Capture --------------------------------------------------------------

    def _run_detached(self) -> asyncio.Future:
        task = asyncio.get_running_loop().create_task(self.run_cycle())
        self._cycles.add(task)
        task.add_done_callback(self._cycles.discard)
        return asyncio.shield(task)

    async def snapshot_now(self) -> SnapshotRecord | None:
        """Run one capture cycle immediately, queued behind any cycle in flight."""

        if self._store is None or self._disposed:
            return None
        return await self._run_detached()

    async def run_cycle(self) -> SnapshotRecord | None:
        """Drain the dirty set, capture it and prune old snapshots.

        An empty dirty set leaves the store untouched. ``last_error`` only
        describes the most recent cycle.
        """

        if self._store is None or self._tracker is None:
            return None

        async with self._lock:
            store = self._store
            tracker = self._tracker
            limit = self._config.max_snapshots
            self.last_error = None
            if len(tracker) == 0:
                return None

            try:
                await asyncio.to_thread(store.ensure_root)
            except StoreUnavailableError as exc:
                self._abort(str(exc), len(tracker))
                return None

            paths = tracker.drain()
            if not paths:
                return None

            try:
                record = await asyncio.to_thread(store.capture, paths)
            except StoreUnavailableError as exc:
                tracker.restore(paths)
                self._abort(str(exc), len(paths))
                return None
            if record is None:
                return None

            removed = await asyncio.to_thread(store.prune, limit)

            self.last_capture = record
            self.capture_count += 1
            logger.info(
                "Snapshot saved (%d files)",
                len(record.files),
                extra={"snapshot": record.timestamp, "requested": len(paths), "pruned": len(removed)},
            )
            self._write_journal("record_capture", snapshot=record.timestamp, files=record.files, requested=len(paths))
            if removed:
                self._write_journal("record_prune", removed=removed, limit=limit)
            self._notify(record)
            return record

    def _abort(self, reason: str, pending: int) -> None:
        self.last_error = reason
        logger.warning("Snapshot cycle aborted", extra={"reason": reason, "pending": pending})
        self._write_journal("record_abort", reason=reason, pending=pending)

    def _write_journal(self, method: str, **payload: Any) -> None:
        if self._journal is None:
            return
        try:
            getattr(self._journal, method)(workspace=str(self._workspace), **payload)
        except Exception as exc:
            logger.warning("Journal write failed", extra={"method": method, "error": str(exc)})

    def _notify(self, record: SnapshotRecord) -> None:
        for listener in list(self._listeners):
            try:
                listener(record)
            except Exception:
                logger.exception("Capture listener failed")

    # Read access ----------------------------------------------------------

    def list_snapshots(self) -> list[SnapshotRecord]:
        if self._store is None:
            raise NoWorkspaceError("No workspace is open")
        return self._store.list_snapshots()

    def resolve_snapshot_path(self, timestamp: str, relative_path: str) -> Path | None:
        """Path to a stored file for opening, or None when no workspace is open."""

        if self._store is None:
            return None
        return self._store.resolve(timestamp, relative_path)

    def status(self) -> dict[str, Any]:
        return {
            "workspace": str(self._workspace) if self._workspace is not None else None,
            "state": self._state.value,
            "busy": self.busy,
            "pending_paths": len(self._tracker) if self._tracker is not None else 0,
            "store_root": str(self._store.root) if self._store is not None else None,
            "config": self._config.model_dump(by_alias=True),
            "capture_count": self.capture_count,
            "last_capture": self.last_capture.model_dump() if self.last_capture else None,
            "last_error": self.last_error,
        }


__all__ = ["CaptureListener", "SchedulerState", "SnapshotManager"]
