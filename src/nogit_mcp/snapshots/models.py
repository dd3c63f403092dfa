"""Snapshot records and timestamp identities."""

from __future__ import annotations

import re
from datetime import datetime, timedelta
from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field, field_validator

TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"
MAX_SEQUENCE = 99

_SNAPSHOT_NAME = re.compile(r"^(?P<base>\d{8}-\d{6})(?:-(?P<seq>\d{2}))?$")


class SnapshotRecord(BaseModel):
    """One completed capture, as persisted in its manifest."""

    model_config = ConfigDict(frozen=True)

    timestamp: str = Field(..., description="Snapshot identity, YYYYMMDD-HHmmss[-NN].")
    files: tuple[str, ...] = Field(
        default=(),
        description="Workspace-relative paths that were copied, in capture order.",
    )

    @field_validator("timestamp")
    @classmethod
    def _validate_timestamp(cls, value: str) -> str:
        if not is_snapshot_name(value):
            raise ValueError(f"'{value}' is not a snapshot timestamp")
        return value

    @field_validator("files", mode="before")
    @classmethod
    def _ensure_sequence(cls, value):
        if value is None:
            return ()
        if isinstance(value, (list, tuple)):
            return tuple(value)
        raise TypeError("files must be a sequence of relative paths")


def format_timestamp(moment: datetime) -> str:
    return moment.strftime(TIMESTAMP_FORMAT)


def is_snapshot_name(name: str) -> bool:
    """Return True when ``name`` looks like a snapshot directory name."""

    return _SNAPSHOT_NAME.match(name) is not None


def split_snapshot_name(name: str) -> tuple[str, int]:
    match = _SNAPSHOT_NAME.match(name)
    if match is None:
        raise ValueError(f"'{name}' is not a snapshot timestamp")
    return match.group("base"), int(match.group("seq") or 0)


def next_snapshot_name(existing: Iterable[str], moment: datetime) -> str:
    """Pick the identity for a capture starting at ``moment``.

    The result is later, in lexicographic order, than every name in
    ``existing``. When the clock has not moved past the newest snapshot a
    two-digit counter is appended; once the counter passes ``MAX_SEQUENCE``
    the identity rolls over to the following second.
    """

    candidate = format_timestamp(moment)
    names = [name for name in existing if is_snapshot_name(name)]
    if not names:
        return candidate
    latest = max(names)
    if candidate > latest:
        return candidate

    base, sequence = split_snapshot_name(latest)
    if sequence < MAX_SEQUENCE:
        return f"{base}-{sequence + 1:02d}"
    rolled = datetime.strptime(base, TIMESTAMP_FORMAT) + timedelta(seconds=1)
    return format_timestamp(rolled)


__all__ = [
    "MAX_SEQUENCE",
    "SnapshotRecord",
    "TIMESTAMP_FORMAT",
    "format_timestamp",
    "is_snapshot_name",
    "next_snapshot_name",
    "split_snapshot_name",
]
