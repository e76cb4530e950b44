"""Index document model — The queryable projection of a ``Record``."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class DocumentVersion(BaseModel):
    """Optimistic concurrency token reported by the engine for one document."""

    version: int = Field(description="Per-document counter, incremented on every write")
    seq_no: int | None = Field(default=None, description="Engine sequence number of the last write")
    primary_term: int | None = Field(default=None, description="Engine primary term of the last write")


class IndexDocument(BaseModel):
    """A record as stored in the search index.

    ``version`` is only populated when the document was read back from
    the engine; it is never part of the indexed body.
    """

    id: str = Field(description="Document identifier (the record id as a string)")
    name: str = Field(default="", description="Analyzed name")
    properties: dict[str, str] = Field(default_factory=dict, description="Flattened exact-match properties")
    taxon_ids: list[str] = Field(default_factory=list, description="Taxon memberships")
    price: float | None = Field(default=None, description="Numeric price")
    updated_at: datetime | None = Field(default=None, description="Commit timestamp of the indexed snapshot")
    version: int | None = Field(default=None, description="Engine version, when read from the index")
    score: float | None = Field(default=None, description="Relevance score, when returned by a search")

    def to_source(self) -> dict[str, Any]:
        """Return the body sent to the engine."""
        return self.model_dump(mode="json", exclude={"id", "version", "score"})
