"""Synchronization outcome models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class SyncAction(str, Enum):
    """What the synchronizer did to the index for one notification."""

    INDEXED = "indexed"
    REMOVED = "removed"


class SyncOutcome(BaseModel):
    """Result of a single ``on_mutation`` / ``on_deletion`` call."""

    record_id: str = Field(description="Identifier of the synchronized record")
    action: SyncAction = Field(description="Index operation that was applied")
    version: int | None = Field(default=None, description="Resulting document version (indexed only)")
    existed: bool | None = Field(default=None, description="Whether a document was actually removed (removed only)")
    attempts: int = Field(default=1, description="Number of write attempts, including conflict retries")


class ReindexStats(BaseModel):
    """Counters for a bulk re-synchronization run."""

    indexed: int = Field(default=0, description="Records upserted into the index")
    removed: int = Field(default=0, description="Records removed (or kept absent) because not visible")
    failed: int = Field(default=0, description="Records that hit a conflict or transient engine error")
    failed_ids: list[str] = Field(default_factory=list, description="Identifiers of the failed records")

    def record(self, outcome: SyncOutcome) -> None:
        if outcome.action is SyncAction.INDEXED:
            self.indexed += 1
        else:
            self.removed += 1

    def fail(self, record_id: str) -> None:
        self.failed += 1
        self.failed_ids.append(record_id)
