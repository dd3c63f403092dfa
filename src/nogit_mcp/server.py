"""FastMCP server bootstrap for nogit."""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastmcp import Context, FastMCP

from . import __version__
from .config import ConfigLoadError, NogitSettings, get_settings, load_snapshot_config
from .scheduler import SnapshotManager, WorkspaceWatcher
from .snapshots import SnapshotStoreError
from .storage import ChromaJournal, JournalUnavailableError
from .tools import register_tools

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    """Configure root logging for the nogit server."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def create_server(
    settings: Optional[NogitSettings] = None,
    manager: SnapshotManager | None = None,
) -> FastMCP:
    """Instantiate the FastMCP server around a snapshot manager."""

    settings = settings or get_settings()

    journal: ChromaJournal | None = None
    journal_metadata: dict[str, Any] = {
        "available": False,
        "path": str(settings.journal_path) if settings.journal_path else None,
        "collection": "nogit_snapshots",
        "error": None,
    }
    if settings.journal_path is not None:
        try:
            journal = ChromaJournal(settings.journal_path)
            journal.ping()
            journal_metadata["available"] = True
        except JournalUnavailableError as exc:
            journal_metadata["error"] = str(exc)
            journal = None

    config_error: str | None = None
    if manager is None:
        try:
            config = load_snapshot_config(settings.config_path)
        except ConfigLoadError as exc:
            config_error = str(exc)
            logger.warning("Using default snapshot configuration", extra={"error": config_error})
            config = None
        manager = SnapshotManager(settings.workspace, config, journal=journal)

    server = FastMCP(
        name="nogit",
        version=__version__,
        instructions=(
            "nogit keeps timestamped snapshots of files modified in the workspace "
            "without a version-control system. Use the tools to capture a snapshot "
            "now, browse the timeline, and locate stored copies of files."
        ),
    )

    handles = register_tools(server, manager=manager)

    @server.resource(
        "resource://nogit/status",
        name="nogit_status",
        title="nogit Status",
        description="Provides the current scheduler and snapshot store status.",
        mime_type="application/json",
        tags={"status", "health"},
    )
    def status_resource(context: Context) -> str:
        """Return a JSON string summarizing basic runtime state."""

        snapshot_count: int | None = None
        latest: str | None = None
        store_error: str | None = None
        if manager.workspace is not None:
            try:
                records = manager.list_snapshots()
                snapshot_count = len(records)
                latest = records[0].timestamp if records else None
            except SnapshotStoreError as exc:
                store_error = str(exc)

        recent_events: list[dict[str, Any]] = []
        journal_error = None
        if journal is not None:
            try:
                recent_events = [
                    {
                        "event_type": event.event_type,
                        "timestamp": event.timestamp.isoformat(),
                        "metadata": event.metadata,
                    }
                    for event in journal.fetch_events(limit=5)
                ]
            except Exception as exc:  # pragma: no cover - backend specific
                journal_error = str(exc)

        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "server_version": __version__,
            "log_level": settings.log_level,
            "scheduler": manager.status(),
            "config_error": config_error,
            "snapshots": {
                "count": snapshot_count,
                "latest": latest,
                "error": store_error,
            },
            "journal": {
                **journal_metadata,
                "recent_events": recent_events,
                "error": journal_error or journal_metadata["error"],
            },
            "request_id": getattr(context, "request_id", None),
        }
        return json.dumps(payload)

    setattr(server, "snapshot_manager", manager)
    setattr(server, "journal", journal)
    setattr(server, "journal_metadata", journal_metadata)
    setattr(server, "tool_handles", handles)
    return server


async def serve(server: FastMCP, settings: NogitSettings) -> None:
    """Run the MCP server with the snapshot timer and workspace watcher alongside it."""

    manager: SnapshotManager = getattr(server, "snapshot_manager")
    manager.start()

    watcher: WorkspaceWatcher | None = None
    if settings.watch and manager.workspace is not None:
        watcher = WorkspaceWatcher(
            manager,
            asyncio.get_running_loop(),
            config_path=settings.config_path,
        )
        watcher.start()

    try:
        await server.run_async()
    finally:
        if watcher is not None:
            watcher.stop()
        await manager.stop()


def main() -> None:
    """Entry point for running the nogit MCP server via CLI."""

    settings = get_settings()
    configure_logging(settings.log_level)

    server = create_server(settings)
    manager: SnapshotManager = getattr(server, "snapshot_manager")
    logger.info(
        "Launching nogit MCP server",
        extra={
            "version": __version__,
            "log_level": settings.log_level,
            "workspace": str(settings.workspace) if settings.workspace else None,
            "journal_available": getattr(server, "journal_metadata", {}).get("available"),
            "snapshots_enabled": manager.config.enable,
        },
    )
    asyncio.run(serve(server, settings))


if __name__ == "__main__":
    main()
