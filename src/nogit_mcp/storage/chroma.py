"""Chroma-backed journal of capture and prune outcomes."""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Protocol, Sequence

from .models import JournalEvent

EVENT_CAPTURED = "snapshot_captured"
EVENT_PRUNED = "snapshot_pruned"
EVENT_ABORTED = "capture_aborted"


class JournalUnavailableError(RuntimeError):
    """Raised when the Chroma client cannot be constructed."""


class CollectionProtocol(Protocol):
    """Protocol for the minimal Chroma collection API used by the journal."""

    def add(
        self,
        *,
        documents: Iterable[str],
        metadatas: Iterable[dict[str, Any]],
        ids: Iterable[str],
    ) -> None:
        ...

    def get(
        self,
        *,
        ids: Iterable[str] | None = None,
        where: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> dict[str, list[Any]]:
        ...


class ClientProtocol(Protocol):
    """Protocol for the minimal Chroma client API used by the journal."""

    def get_or_create_collection(self, name: str) -> CollectionProtocol:
        ...


class ChromaJournal:
    """Persist a history of snapshot activity via ChromaDB."""

    def __init__(
        self,
        path: Path,
        *,
        collection_name: str = "nogit_snapshots",
        client_factory: Callable[[], ClientProtocol] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._path = Path(path)
        self._collection_name = collection_name
        self._client_factory = client_factory or self._default_client_factory
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._client: ClientProtocol | None = None
        self._collection: CollectionProtocol | None = None
        self._sequence = 0

    @property
    def path(self) -> Path:
        return self._path

    def _default_client_factory(self) -> ClientProtocol:
        try:
            import chromadb
        except ImportError as exc:  # pragma: no cover - depends on environment
            raise JournalUnavailableError(
                "chromadb package is not installed; install nogit-mcp with the journal extra"
            ) from exc

        return chromadb.PersistentClient(path=str(self._path))

    def _ensure_collection(self) -> CollectionProtocol:
        if self._collection is None:
            client = self._client or self._client_factory()
            self._client = client
            self._collection = client.get_or_create_collection(self._collection_name)
        return self._collection

    def _convert_result(self, result: dict[str, list[Any]]) -> list[JournalEvent]:
        events: list[JournalEvent] = []
        ids = result.get("ids", [])
        documents = result.get("documents", [])
        metadatas = result.get("metadatas", [])
        for event_id, document, metadata in zip(ids, documents, metadatas):
            timestamp_raw = metadata.get("timestamp")
            timestamp = (
                datetime.fromisoformat(timestamp_raw)
                if isinstance(timestamp_raw, str)
                else self._clock()
            )
            events.append(
                JournalEvent(
                    id=event_id,
                    event_type=metadata.get("event_type", ""),
                    document=document,
                    metadata=metadata,
                    timestamp=timestamp,
                )
            )
        events.sort(key=lambda event: (event.timestamp, event.metadata.get("sequence", 0)))
        return events

    def ping(self) -> bool:
        """Verify that the underlying collection can be obtained."""

        self._ensure_collection()
        return True

    def record_event(
        self,
        *,
        event_type: str,
        body: Any,
        metadata: dict[str, Any] | None = None,
    ) -> JournalEvent:
        collection = self._ensure_collection()
        self._sequence += 1
        event_id = f"{event_type}:{uuid.uuid4().hex}"
        timestamp = self._clock()

        document = body if isinstance(body, str) else json.dumps(body)
        record_metadata: dict[str, Any] = {
            "event_type": event_type,
            "timestamp": timestamp.isoformat(),
            "sequence": self._sequence,
        }
        if metadata:
            record_metadata.update(metadata)

        collection.add(
            documents=[document],
            metadatas=[record_metadata],
            ids=[event_id],
        )

        return JournalEvent(
            id=event_id,
            event_type=event_type,
            document=document,
            metadata=record_metadata,
            timestamp=timestamp,
        )

    def record_capture(
        self,
        *,
        workspace: str,
        snapshot: str,
        files: Sequence[str],
        requested: int,
    ) -> JournalEvent:
        return self.record_event(
            event_type=EVENT_CAPTURED,
            body={"snapshot": snapshot, "files": list(files), "requested": requested},
            metadata={
                "workspace": workspace,
                "snapshot": snapshot,
                "file_count": len(files),
                "failed_count": max(0, requested - len(files)),
            },
        )

    def record_prune(self, *, workspace: str, removed: Sequence[str], limit: int) -> JournalEvent:
        return self.record_event(
            event_type=EVENT_PRUNED,
            body={"removed": list(removed), "limit": limit},
            metadata={"workspace": workspace, "removed_count": len(removed), "limit": limit},
        )

    def record_abort(self, *, workspace: str, reason: str, pending: int) -> JournalEvent:
        return self.record_event(
            event_type=EVENT_ABORTED,
            body={"reason": reason, "pending": pending},
            metadata={"workspace": workspace, "pending": pending},
        )

    def search_events(
        self,
        *,
        filters: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> list[JournalEvent]:
        collection = self._ensure_collection()
        result = collection.get(where=filters)
        events = self._convert_result(result)
        return events[-limit:] if limit else events

    def fetch_events(self, event_type: str | None = None, *, limit: int | None = None) -> list[JournalEvent]:
        """Return journal entries oldest first, optionally only the latest ``limit``."""

        filters = {"event_type": event_type} if event_type else None
        return self.search_events(filters=filters, limit=limit)


__all__ = [
    "ChromaJournal",
    "EVENT_ABORTED",
    "EVENT_CAPTURED",
    "EVENT_PRUNED",
    "JournalUnavailableError",
]
