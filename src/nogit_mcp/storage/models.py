"""Data models for the capture journal."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass(slots=True)
class JournalEvent:
    """Represents a stored journal entry."""

    id: str
    event_type: str
    document: str
    metadata: dict[str, Any]
    timestamp: datetime


__all__ = ["JournalEvent"]
