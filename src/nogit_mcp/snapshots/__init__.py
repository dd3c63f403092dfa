"""Dirty-file tracking and the on-disk snapshot store."""

from .models import SnapshotRecord, next_snapshot_name
from .store import (
    MANIFEST_NAME,
    ManifestError,
    NoWorkspaceError,
    SnapshotStore,
    SnapshotStoreError,
    StoreUnavailableError,
)
from .tracker import DirtySetTracker

__all__ = [
    "DirtySetTracker",
    "MANIFEST_NAME",
    "ManifestError",
    "NoWorkspaceError",
    "SnapshotRecord",
    "SnapshotStore",
    "SnapshotStoreError",
    "StoreUnavailableError",
    "next_snapshot_name",
]
