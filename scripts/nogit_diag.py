"""nogit diagnostics CLI."""

from __future__ import annotations

import argparse
import json
from pathlib import Path

from nogit_mcp.config import ConfigLoadError, NogitSettings, SnapshotConfig, load_snapshot_config
from nogit_mcp.snapshots import DirtySetTracker, SnapshotStore, StoreUnavailableError
from nogit_mcp.storage import ChromaJournal, JournalUnavailableError


def load_settings(args: argparse.Namespace) -> NogitSettings:
    settings = NogitSettings()
    workspace = getattr(args, "workspace", None)
    if workspace:
        settings.workspace = Path(workspace).expanduser().resolve()
    return settings


def load_config(settings: NogitSettings) -> SnapshotConfig:
    try:
        return load_snapshot_config(settings.config_path)
    except ConfigLoadError as exc:
        print(f"Invalid configuration: {exc}")
        raise SystemExit(1)


def load_store(settings: NogitSettings, config: SnapshotConfig) -> SnapshotStore:
    if settings.workspace is None:
        print("No workspace: pass --workspace or set NOGIT_WORKSPACE")
        raise SystemExit(1)
    return SnapshotStore(settings.workspace, folder_name=config.snapshot_folder_name)


def load_journal(settings: NogitSettings) -> ChromaJournal:
    if settings.journal_path is None:
        print("Journal unavailable: NOGIT_JOURNAL_PATH is not set")
        raise SystemExit(1)
    try:
        return ChromaJournal(settings.journal_path)
    except JournalUnavailableError as exc:
        print(f"Journal unavailable: {exc}")
        raise SystemExit(1)


def cmd_list(args: argparse.Namespace) -> None:
    settings = load_settings(args)
    store = load_store(settings, load_config(settings))
    records = store.list_snapshots()
    if args.limit is not None and args.limit > 0:
        records = records[: args.limit]
    if args.json:
        print(json.dumps([record.model_dump(mode="json") for record in records], indent=2))
    else:
        for record in records:
            print(f"{record.timestamp} ({len(record.files)} files)")
            for rel in record.files:
                print(f"  {rel}")


def cmd_resolve(args: argparse.Namespace) -> None:
    settings = load_settings(args)
    store = load_store(settings, load_config(settings))
    print(store.resolve(args.timestamp, args.path))


def cmd_capture(args: argparse.Namespace) -> None:
    settings = load_settings(args)
    config = load_config(settings)
    store = load_store(settings, config)
    tracker = DirtySetTracker(
        store.workspace,
        snapshot_folder=config.snapshot_folder_name,
        exclude_dirs=config.exclude_dirs,
    )
    for path in args.paths:
        tracker.record_save(Path(path).expanduser().resolve())
    paths = tracker.drain()
    if not paths:
        print("Nothing to capture")
        return
    try:
        record = store.capture(paths)
    except StoreUnavailableError as exc:
        print(f"Snapshot store unavailable: {exc}")
        raise SystemExit(1)
    removed = store.prune(config.max_snapshots)
    print(
        json.dumps(
            {
                "timestamp": record.timestamp,
                "files": list(record.files),
                "skipped": [rel for rel in paths if rel not in record.files],
                "pruned": removed,
            },
            indent=2,
        )
    )


def cmd_prune(args: argparse.Namespace) -> None:
    settings = load_settings(args)
    config = load_config(settings)
    store = load_store(settings, config)
    limit = args.max if args.max is not None else config.max_snapshots
    if limit < 1:
        print("--max must be >= 1")
        raise SystemExit(2)
    removed = store.prune(limit)
    print(json.dumps({"limit": limit, "removed": removed, "remaining": len(store.snapshot_names())}, indent=2))


def cmd_journal(args: argparse.Namespace) -> None:
    settings = load_settings(args)
    journal = load_journal(settings)
    try:
        events = journal.fetch_events(args.type, limit=args.limit)
    except JournalUnavailableError as exc:
        print(f"Journal unavailable: {exc}")
        raise SystemExit(1)

    payload = [
        {
            "event_id": getattr(event, "id", None),
            "event_type": event.event_type,
            "snapshot": event.metadata.get("snapshot"),
            "workspace": event.metadata.get("workspace"),
            "timestamp": event.timestamp.isoformat(),
            "document": json.loads(event.document),
        }
        for event in events
    ]
    print(json.dumps(payload, indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="nogit snapshot diagnostics")
    parser.add_argument("--workspace", help="Workspace root (defaults to NOGIT_WORKSPACE)")
    sub = parser.add_subparsers(dest="cmd")

    p_list = sub.add_parser("list", help="List snapshots, newest first")
    p_list.add_argument("--json", action="store_true", help="Output JSON")
    p_list.add_argument("--limit", type=int, default=None, help="Show only the newest N snapshots")
    p_list.set_defaults(func=cmd_list)

    p_resolve = sub.add_parser("resolve", help="Print the stored path of a file in a snapshot")
    p_resolve.add_argument("timestamp")
    p_resolve.add_argument("path")
    p_resolve.set_defaults(func=cmd_resolve)

    p_capture = sub.add_parser("capture", help="Snapshot the given files immediately")
    p_capture.add_argument("paths", nargs="+")
    p_capture.set_defaults(func=cmd_capture)

    p_prune = sub.add_parser("prune", help="Delete the oldest snapshots beyond the retention limit")
    p_prune.add_argument("--max", type=int, default=None, help="Override maxSnapshots")
    p_prune.set_defaults(func=cmd_prune)

    p_journal = sub.add_parser("journal", help="Show capture journal entries")
    p_journal.add_argument("--type", default=None, help="Filter by event type")
    p_journal.add_argument(
        "--limit",
        type=int,
        default=None,
        help="If provided, show only the latest N entries",
    )
    p_journal.set_defaults(func=cmd_journal)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
