from __future__ import annotations

import threading
from pathlib import Path

import pytest

from nogit_mcp.snapshots import DirtySetTracker


@pytest.fixture()
def tracker(tmp_path: Path) -> DirtySetTracker:
    return DirtySetTracker(tmp_path)


def test_records_relative_posix_paths(tracker: DirtySetTracker, tmp_path: Path) -> None:
    assert tracker.record_change(tmp_path / "a.txt")
    assert tracker.record_save(tmp_path / "sub" / "b.txt")

    assert tracker.drain() == ["a.txt", "sub/b.txt"]


def test_duplicates_collapse(tracker: DirtySetTracker, tmp_path: Path) -> None:
    tracker.record_change(tmp_path / "a.txt")
    tracker.record_save(tmp_path / "a.txt")
    tracker.record_change(str(tmp_path / "a.txt"))

    assert tracker.drain() == ["a.txt"]


def test_drain_clears_and_later_records_go_to_next_drain(tracker: DirtySetTracker, tmp_path: Path) -> None:
    tracker.record_change(tmp_path / "first.txt")
    first = tracker.drain()
    tracker.record_change(tmp_path / "second.txt")

    assert first == ["first.txt"]
    assert tracker.drain() == ["second.txt"]
    assert tracker.drain() == []


def test_rejects_paths_outside_workspace(tmp_path: Path) -> None:
    workspace = tmp_path / "project"
    workspace.mkdir()
    tracker = DirtySetTracker(workspace)

    assert not tracker.record_change(tmp_path / "elsewhere.txt")
    assert not tracker.record_change(workspace)
    assert not tracker.record_change(workspace / ".." / "project-other" / "x.txt")
    assert len(tracker) == 0


@pytest.mark.parametrize(
    "relative",
    [
        ".git/config",
        ".nogit/snapshots/20240101-120000/a.txt",
        "node_modules/pkg/index.js",
        "web/node_modules/pkg/index.js",
        "dist/bundle.js",
        "out/main.js",
        "src/__pycache__/mod.cpython-312.pyc",
    ],
)
def test_excluded_directories_are_ignored(tracker: DirtySetTracker, tmp_path: Path, relative: str) -> None:
    assert not tracker.record_change(tmp_path / relative)
    assert not tracker.record_save(tmp_path / relative)
    assert tracker.drain() == []


def test_excluded_name_as_file_is_tracked(tracker: DirtySetTracker, tmp_path: Path) -> None:
    assert tracker.record_change(tmp_path / "dist")
    assert tracker.record_change(tmp_path / "docs" / "out")
    assert tracker.drain() == ["dist", "docs/out"]


def test_custom_snapshot_folder_is_excluded(tmp_path: Path) -> None:
    tracker = DirtySetTracker(tmp_path, snapshot_folder=".history", exclude_dirs=())

    assert not tracker.record_change(tmp_path / ".history" / "snapshots" / "x" / "a.txt")
    assert tracker.record_change(tmp_path / ".nogit" / "notes.txt")


def test_configured_exclusions_extend_builtin_list(tmp_path: Path) -> None:
    tracker = DirtySetTracker(tmp_path, exclude_dirs=("build",))

    assert not tracker.record_change(tmp_path / "build" / "x.o")
    assert not tracker.record_change(tmp_path / ".git" / "HEAD")
    assert not tracker.record_change(tmp_path / "node_modules" / "pkg" / "index.js")
    assert tracker.record_change(tmp_path / "src" / "main.c")
    assert tracker.pending() == ["src/main.c"]


def test_set_exclusions_drops_newly_excluded_entries(tracker: DirtySetTracker, tmp_path: Path) -> None:
    tracker.record_change(tmp_path / "build" / "x.o")
    tracker.record_change(tmp_path / "src" / "main.c")

    tracker.set_exclusions(snapshot_folder=".nogit", exclude_dirs=("build",))

    assert tracker.pending() == ["src/main.c"]


def test_relative_input_is_resolved_against_workspace(tracker: DirtySetTracker) -> None:
    assert tracker.record_change("notes/todo.md")
    assert tracker.drain() == ["notes/todo.md"]


def test_restore_returns_paths_to_the_set(tracker: DirtySetTracker, tmp_path: Path) -> None:
    tracker.record_change(tmp_path / "a.txt")
    drained = tracker.drain()
    tracker.record_change(tmp_path / "b.txt")

    tracker.restore(drained)

    assert tracker.drain() == ["a.txt", "b.txt"]


def test_concurrent_records_are_not_lost(tracker: DirtySetTracker, tmp_path: Path) -> None:
    drained: list[str] = []

    def writer(offset: int) -> None:
        for index in range(200):
            tracker.record_change(tmp_path / f"w{offset}" / f"{index}.txt")

    threads = [threading.Thread(target=writer, args=(offset,)) for offset in range(4)]
    for thread in threads:
        thread.start()
    while any(thread.is_alive() for thread in threads):
        drained.extend(tracker.drain())
    for thread in threads:
        thread.join()
    drained.extend(tracker.drain())

    assert len(drained) == 800
    assert len(set(drained)) == 800
