"""Tool registration for the nogit MCP server."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal

from fastmcp import Context, FastMCP

from ..scheduler import SnapshotManager
from ..snapshots import NoWorkspaceError, SnapshotRecord


@dataclass(slots=True)
class ToolHandles:
    snapshot_now: Any
    list_snapshots: Any
    resolve_snapshot_path: Any
    export_timeline: Any


def _record_summary(record: SnapshotRecord) -> dict[str, Any]:
    return {
        "timestamp": record.timestamp,
        "files": list(record.files),
        "file_count": len(record.files),
    }


def register_tools(server: FastMCP, *, manager: SnapshotManager) -> ToolHandles:
    """Register the snapshot tools on the server."""

    def _require_workspace() -> None:
        if manager.workspace is None:
            raise RuntimeError("No workspace is open; set NOGIT_WORKSPACE to enable snapshots")

    async def _snapshot_now(context: Context | None = None) -> dict[str, Any]:
        """Capture every file changed since the last snapshot."""

        if manager.workspace is None:
            _emit_log(context, "warning", "Snapshot requested without a workspace")
            return {"captured": False, "reason": "no_workspace"}

        record = await manager.snapshot_now()
        if record is None:
            reason = "store_unavailable" if manager.last_error else "no_changes"
            _emit_log(context, "debug", "Snapshot skipped", extra={"reason": reason})
            return {"captured": False, "reason": reason, "error": manager.last_error}

        _emit_log(
            context,
            "info",
            "Snapshot captured",
            extra={"snapshot": record.timestamp, "file_count": len(record.files)},
        )
        return {"captured": True, **_record_summary(record)}

    def _list_snapshots(limit: int | None = None, context: Context | None = None) -> list[dict[str, Any]]:
        """List stored snapshots, newest first."""

        _require_workspace()
        try:
            records = manager.list_snapshots()
        except NoWorkspaceError as exc:  # pragma: no cover - guarded above
            raise RuntimeError(str(exc)) from exc
        if limit is not None and limit > 0:
            records = records[:limit]
        catalog = [_record_summary(record) for record in records]
        _emit_log(context, "debug", "Listing snapshots", extra={"count": len(catalog)})
        return catalog

    def _resolve_snapshot_path(
        timestamp: str,
        relative_path: str,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Return the stored location of a file inside a snapshot."""

        path = manager.resolve_snapshot_path(timestamp, relative_path)
        _emit_log(
            context,
            "debug",
            "Resolved snapshot path",
            extra={"snapshot": timestamp, "path": relative_path, "available": path is not None},
        )
        return {
            "timestamp": timestamp,
            "relative_path": relative_path,
            "available": path is not None,
            "path": str(path) if path is not None else None,
        }

    def _export_timeline(
        *,
        format: Literal["json", "markdown"] = "json",
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Export the snapshot timeline in the requested format."""

        _require_workspace()
        records = manager.list_snapshots()
        if format == "json":
            payload = {"format": "json", "data": [_record_summary(record) for record in records]}
        elif format == "markdown":
            lines = [f"# Snapshot timeline for {manager.workspace}"]
            if not records:
                lines.append("")
                lines.append("_No snapshots yet._")
            for record in records:
                lines.append("")
                lines.append(f"## {record.timestamp}")
                if not record.files:
                    lines.append("- _No files captured in this snapshot._")
                for rel in record.files:
                    lines.append(f"- `{rel}`")
            payload = {"format": "markdown", "data": "\n".join(lines)}
        else:
            raise ValueError("Unsupported export format. Use 'json' or 'markdown'.")

        _emit_log(
            context,
            "info",
            "Exported timeline",
            extra={"format": format, "count": len(records)},
        )
        return payload

    tool_snapshot = server.tool(
        name="snapshot_now",
        description=(
            "Capture every workspace file changed since the previous snapshot into a new "
            "timestamped snapshot, then prune the oldest snapshots beyond the retention limit."
        ),
    )(_snapshot_now)

    tool_list = server.tool(
        name="list_snapshots",
        description="List stored snapshots (newest first) with the files each one contains.",
    )(_list_snapshots)

    tool_resolve = server.tool(
        name="resolve_snapshot_path",
        description="Resolve the on-disk path of a file stored in a snapshot so it can be opened.",
    )(_resolve_snapshot_path)

    tool_export = server.tool(
        name="export_timeline",
        description="Export the snapshot timeline as JSON or Markdown.",
    )(_export_timeline)

    return ToolHandles(
        snapshot_now=tool_snapshot,
        list_snapshots=tool_list,
        resolve_snapshot_path=tool_resolve,
        export_timeline=tool_export,
    )


__all__ = ["register_tools", "ToolHandles"]

logger = logging.getLogger(__name__)


def _emit_log(
    context: Context | None,
    level: str,
    message: str,
    *,
    extra: dict[str, Any] | None = None,
) -> None:
    """Best-effort logging that prefers the MCP context logger when available."""

    payload = extra or {}

    if context is not None:
        ctx_logger = getattr(context, "logger", None)
        if ctx_logger is not None:
            log_method = getattr(ctx_logger, level, None)
            if callable(log_method):
                log_method(message, extra=payload)
                return

    fallback = getattr(logger, level, logger.info)
    fallback(message, extra=payload)
