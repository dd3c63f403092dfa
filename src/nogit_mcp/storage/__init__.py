"""Storage abstractions for the capture journal."""

from .chroma import (
    EVENT_ABORTED,
    EVENT_CAPTURED,
    EVENT_PRUNED,
    ChromaJournal,
    JournalUnavailableError,
)
from .models import JournalEvent

__all__ = [
    "ChromaJournal",
    "EVENT_ABORTED",
    "EVENT_CAPTURED",
    "EVENT_PRUNED",
    "JournalEvent",
    "JournalUnavailableError",
]
