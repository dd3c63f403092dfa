"""On-disk store of timestamped snapshot directories."""

from __future__ import annotations

import logging
import shutil
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Callable, Sequence

from pydantic import ValidationError

from .models import SnapshotRecord, is_snapshot_name, next_snapshot_name

logger = logging.getLogger(__name__)

MANIFEST_NAME = "meta.json"
SNAPSHOTS_DIRNAME = "snapshots"
PARTIAL_SUFFIX = ".partial"


class SnapshotStoreError(RuntimeError):
    """Base class for snapshot store errors."""


class NoWorkspaceError(SnapshotStoreError):
    """Raised when a store operation is requested without an open workspace."""


class StoreUnavailableError(SnapshotStoreError):
    """Raised when the store root or a snapshot directory cannot be created."""


class ManifestError(SnapshotStoreError):
    """Raised when a snapshot manifest is missing or cannot be parsed."""


def _is_safe_relative(rel: str) -> bool:
    path = PurePosixPath(rel)
    return bool(rel) and not path.is_absolute() and ".." not in path.parts and "\\" not in rel


class SnapshotStore:
    """Create, list, resolve and prune snapshots under ``<workspace>/<folder>/snapshots``."""

    def __init__(
        self,
        workspace: Path,
        *,
        folder_name: str = ".nogit",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._workspace = Path(workspace)
        self._folder_name = folder_name
        self._clock = clock or datetime.now

    @property
    def workspace(self) -> Path:
        return self._workspace

    @property
    def folder_name(self) -> str:
        return self._folder_name

    @property
    def root(self) -> Path:
        return self._workspace / self._folder_name / SNAPSHOTS_DIRNAME

    def ensure_root(self) -> Path:
        """Create the store root if needed and return it."""

        root = self.root
        try:
            root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreUnavailableError(f"Cannot create snapshot store at {root}: {exc}") from exc
        return root

    def snapshot_names(self) -> list[str]:
        """Return the names of completed snapshots, oldest first."""

        root = self.root
        if not root.is_dir():
            return []
        try:
            names = [entry.name for entry in root.iterdir() if entry.is_dir() and is_snapshot_name(entry.name)]
        except OSError as exc:
            logger.warning("Cannot read snapshot store", extra={"root": str(root), "error": str(exc)})
            return []
        return sorted(names)

    def capture(self, paths: Sequence[str]) -> SnapshotRecord | None:
        """Copy ``paths`` into a new snapshot and return its record.

        Nothing is created when ``paths`` is empty. Files that cannot be copied
        are logged and left out of the manifest; the rest of the capture goes
        ahead. The snapshot becomes visible only once its manifest is written.
        """

        items = list(dict.fromkeys(paths))
        if not items:
            return None

        root = self.ensure_root()
        name = next_snapshot_name(self.snapshot_names(), self._clock())
        staging = root / f".{name}{PARTIAL_SUFFIX}"
        try:
            if staging.exists():
                shutil.rmtree(staging)
            staging.mkdir()
        except OSError as exc:
            raise StoreUnavailableError(f"Cannot create snapshot directory {staging}: {exc}") from exc

        copied: list[str] = []
        for rel in items:
            if not _is_safe_relative(rel):
                logger.warning("Refusing to copy path outside workspace", extra={"path": rel})
                continue
            if rel == MANIFEST_NAME:
                logger.warning(
                    "Skipping file that would collide with the snapshot manifest",
                    extra={"path": rel, "snapshot": name},
                )
                continue
            source = self._workspace.joinpath(*PurePosixPath(rel).parts)
            destination = staging.joinpath(*PurePosixPath(rel).parts)
            try:
                destination.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(source, destination)
            except OSError as exc:
                logger.warning(
                    "Snapshot copy failed",
                    extra={"path": rel, "snapshot": name, "error": str(exc)},
                )
                continue
            copied.append(rel)

        record = SnapshotRecord(timestamp=name, files=copied)
        try:
            (staging / MANIFEST_NAME).write_text(record.model_dump_json(indent=2), encoding="utf-8")
            staging.rename(root / name)
        except OSError as exc:
            shutil.rmtree(staging, ignore_errors=True)
            raise StoreUnavailableError(f"Cannot finalize snapshot {name}: {exc}") from exc

        logger.debug(
            "Captured snapshot",
            extra={"snapshot": name, "requested": len(items), "copied": len(copied)},
        )
        return record

    def read_manifest(self, name: str) -> SnapshotRecord:
        """Load the manifest of snapshot ``name``."""

        path = self.root / name / MANIFEST_NAME
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ManifestError(f"Manifest unreadable for snapshot {name}: {exc}") from exc
        try:
            record = SnapshotRecord.model_validate_json(text)
        except ValidationError as exc:
            raise ManifestError(f"Manifest invalid for snapshot {name}: {exc}") from exc
        if record.timestamp != name:
            raise ManifestError(
                f"Manifest for snapshot {name} names a different timestamp ({record.timestamp})"
            )
        return record

    def list_snapshots(self) -> list[SnapshotRecord]:
        """Return every readable snapshot, newest first."""

        records: list[SnapshotRecord] = []
        for name in reversed(self.snapshot_names()):
            try:
                records.append(self.read_manifest(name))
            except ManifestError as exc:
                logger.debug("Skipping broken snapshot", extra={"snapshot": name, "error": str(exc)})
        return records

    def resolve(self, timestamp: str, relative_path: str) -> Path:
        """Path of ``relative_path`` as stored in snapshot ``timestamp``. No existence check."""

        return self.root.joinpath(timestamp, *PurePosixPath(relative_path).parts)

    def prune(self, max_snapshots: int) -> list[str]:
        """Delete the oldest snapshots beyond ``max_snapshots`` and return their names."""

        if max_snapshots < 1:
            raise ValueError("max_snapshots must be >= 1")

        names = self.snapshot_names()
        excess = max(0, len(names) - max_snapshots)
        removed: list[str] = []
        for name in names[:excess]:
            try:
                shutil.rmtree(self.root / name)
            except OSError as exc:
                logger.warning("Snapshot prune failed", extra={"snapshot": name, "error": str(exc)})
                continue
            removed.append(name)
        if removed:
            logger.debug("Pruned snapshots", extra={"removed": removed, "limit": max_snapshots})
        return removed

    def discard_partial(self) -> list[str]:
        """Remove staging directories left behind by an interrupted capture."""

        root = self.root
        if not root.is_dir():
            return []
        discarded: list[str] = []
        for entry in root.iterdir():
            if entry.is_dir() and entry.name.startswith(".") and entry.name.endswith(PARTIAL_SUFFIX):
                shutil.rmtree(entry, ignore_errors=True)
                discarded.append(entry.name)
        if discarded:
            logger.info("Discarded unfinished snapshots", extra={"entries": discarded})
        return discarded


__all__ = [
    "MANIFEST_NAME",
    "ManifestError",
    "NoWorkspaceError",
    "PARTIAL_SUFFIX",
    "SNAPSHOTS_DIRNAME",
    "SnapshotStore",
    "SnapshotStoreError",
    "StoreUnavailableError",
]
