"""Capture scheduling and change notification plumbing."""

from .manager import CaptureListener, SchedulerState, SnapshotManager
from .watcher import WorkspaceEventHandler, WorkspaceWatcher

__all__ = [
    "CaptureListener",
    "SchedulerState",
    "SnapshotManager",
    "WorkspaceEventHandler",
    "WorkspaceWatcher",
]
