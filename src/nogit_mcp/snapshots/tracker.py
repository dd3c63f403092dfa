"""Tracking of files changed since the last capture."""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path, PurePosixPath
from typing import Iterable

from ..config import DEFAULT_EXCLUDE_DIRS

logger = logging.getLogger(__name__)


class DirtySetTracker:
    """Collect workspace-relative paths reported by change and save notifications.

    Notifications may arrive from an observer thread while a capture cycle
    runs on the event loop, so every mutation happens under a lock.
    """

    def __init__(
        self,
        workspace: Path,
        *,
        snapshot_folder: str = ".nogit",
        exclude_dirs: Iterable[str] = DEFAULT_EXCLUDE_DIRS,
    ) -> None:
        self._workspace = Path(os.path.abspath(workspace))
        self._lock = threading.Lock()
        self._dirty: set[str] = set()
        self._excluded: frozenset[str] = frozenset()
        self.set_exclusions(snapshot_folder=snapshot_folder, exclude_dirs=exclude_dirs)

    @property
    def workspace(self) -> Path:
        return self._workspace

    @property
    def excluded(self) -> frozenset[str]:
        return self._excluded

    def set_exclusions(self, *, snapshot_folder: str, exclude_dirs: Iterable[str]) -> None:
        """Replace the configured exclusions.

        ``exclude_dirs`` extends the built-in list; version-control and
        dependency directories stay excluded whatever the configuration says.
        """

        excluded = set(DEFAULT_EXCLUDE_DIRS)
        excluded.update(name for name in exclude_dirs if name)
        excluded.add(snapshot_folder)
        with self._lock:
            self._excluded = frozenset(excluded)
            # Entries already recorded may now fall under a new exclusion.
            self._dirty = {rel for rel in self._dirty if not self._is_excluded(rel)}

    def to_relative(self, path: str | os.PathLike[str]) -> str | None:
        """Return the workspace-relative POSIX form of ``path``, or None if it lies outside."""

        raw = os.fspath(path)
        absolute = raw if os.path.isabs(raw) else os.path.join(self._workspace, raw)
        try:
            rel = os.path.relpath(os.path.normpath(absolute), self._workspace)
        except ValueError:
            # Different drive on Windows.
            return None
        if rel == os.curdir or rel == os.pardir or rel.startswith(os.pardir + os.sep):
            return None
        return PurePosixPath(*Path(rel).parts).as_posix()

    def _is_excluded(self, rel: str) -> bool:
        directories = PurePosixPath(rel).parts[:-1]
        return any(part in self._excluded for part in directories)

    def _record(self, path: str | os.PathLike[str], source: str) -> bool:
        rel = self.to_relative(path)
        if rel is None:
            logger.debug("Ignoring path outside workspace", extra={"path": os.fspath(path)})
            return False
        if self._is_excluded(rel):
            return False
        with self._lock:
            self._dirty.add(rel)
        logger.debug("Recorded dirty path", extra={"path": rel, "source": source})
        return True

    def record_change(self, path: str | os.PathLike[str]) -> bool:
        """Record a modification notification. Returns True if the path was tracked."""

        return self._record(path, "change")

    def record_save(self, path: str | os.PathLike[str]) -> bool:
        """Record a save notification. Returns True if the path was tracked."""

        return self._record(path, "save")

    def drain(self) -> list[str]:
        """Atomically take every recorded path, sorted, leaving the set empty."""

        with self._lock:
            items = sorted(self._dirty)
            self._dirty = set()
        return items

    def restore(self, paths: Iterable[str]) -> None:
        """Put back paths drained by a cycle that could not run."""

        with self._lock:
            self._dirty.update(rel for rel in paths if not self._is_excluded(rel))

    def pending(self) -> list[str]:
        with self._lock:
            return sorted(self._dirty)

    def __len__(self) -> int:
        with self._lock:
            return len(self._dirty)


__all__ = ["DirtySetTracker"]
