"""Visibility evaluator — Decides whether a record belongs in the index."""

from __future__ import annotations

from datetime import UTC, datetime

from searchsync.models.record import Record


def is_visible(record: Record, now: datetime | None = None) -> bool:
    """Return True if the record should currently appear in the index.

    A record is visible when it is not deleted and its ``available_from``
    is set and not in the future. ``now`` defaults to the current UTC time;
    it is read on every call and never cached.
    """
    if record.deleted or record.available_from is None:
        return False
    if now is None:
        now = datetime.now(UTC)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    return record.available_from <= now
