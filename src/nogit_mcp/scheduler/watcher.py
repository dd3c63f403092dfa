"""Filesystem observer feeding change notifications to a SnapshotManager."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Callable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..config import ConfigLoadError, load_snapshot_config
from .manager import SnapshotManager

logger = logging.getLogger(__name__)


class WorkspaceEventHandler(FileSystemEventHandler):
    """Translate watchdog events into dirty-set notifications.

    Runs on the observer thread. Changes to the workspace configuration file
    are handed to ``on_config_change`` in addition to being tracked.
    """

    def __init__(
        self,
        manager: SnapshotManager,
        *,
        config_path: Path | None = None,
        on_config_change: Callable[[], None] | None = None,
    ) -> None:
        super().__init__()
        self._manager = manager
        self._config_path = os.path.abspath(config_path) if config_path is not None else None
        self._on_config_change = on_config_change

    def _handle(self, raw_path: str | bytes, *, saved: bool) -> None:
        path = os.fsdecode(raw_path)
        if self._config_path is not None and os.path.abspath(path) == self._config_path:
            if self._on_config_change is not None:
                self._on_config_change()
        if saved:
            self._manager.record_save(path)
        else:
            self._manager.record_change(path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._handle(event.src_path, saved=False)

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._handle(event.src_path, saved=False)

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._handle(event.dest_path, saved=False)

    def on_closed(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._handle(event.src_path, saved=True)


class WorkspaceWatcher:
    """Observe a workspace recursively and keep the manager's options in sync with its config file."""

    def __init__(
        self,
        manager: SnapshotManager,
        loop: asyncio.AbstractEventLoop,
        *,
        config_path: Path | None = None,
        observer_factory: Callable[[], Observer] | None = None,
    ) -> None:
        if manager.workspace is None:
            raise ValueError("Cannot watch without a workspace")
        self._manager = manager
        self._loop = loop
        self._config_path = config_path
        self._observer_factory = observer_factory or Observer
        self._observer = None
        self.handler = WorkspaceEventHandler(
            manager,
            config_path=config_path,
            on_config_change=self._schedule_reload,
        )

    @property
    def running(self) -> bool:
        return self._observer is not None

    def start(self) -> None:
        if self._observer is not None:
            return
        observer = self._observer_factory()
        observer.schedule(self.handler, str(self._manager.workspace), recursive=True)
        observer.start()
        self._observer = observer
        logger.info("Watching workspace", extra={"workspace": str(self._manager.workspace)})

    def stop(self, timeout: float = 5.0) -> None:
        observer, self._observer = self._observer, None
        if observer is None:
            return
        observer.stop()
        observer.join(timeout)

    def _schedule_reload(self) -> None:
        self._loop.call_soon_threadsafe(self.reload_config)

    def reload_config(self) -> bool:
        """Re-read the config file and reconfigure the manager when it changed."""

        try:
            config = load_snapshot_config(self._config_path)
        except ConfigLoadError as exc:
            logger.warning("Keeping previous snapshot configuration", extra={"error": str(exc)})
            return False
        if config == self._manager.config:
            return False
        self._manager.reconfigure(config)
        return True


__all__ = ["WorkspaceEventHandler", "WorkspaceWatcher"]
