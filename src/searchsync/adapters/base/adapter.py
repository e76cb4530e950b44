"""Base index backend — Abstract interface for all search engine connectors.

Every search backend must implement this interface to be driven by the
synchronizer and the query path. The backend is responsible for:
  1. Registering the document schema (idempotently)
  2. Create-or-replace writes guarded by the engine's optimistic version
  3. Idempotent removal and lookup by id
  4. Executing engine-native queries, including aggregations
  5. Reporting health status
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field

from searchsync.models.document import DocumentVersion
from searchsync.models.query import EngineQuery


class BackendHealth(BaseModel):
    """Health status of an index backend."""

    status: str = Field(description="Health status: healthy, degraded, unhealthy")
    latency_ms: int = Field(default=0, description="Latency of last health check in ms")
    last_check: str | None = Field(default=None, description="ISO timestamp of last health check")
    message: str | None = Field(default=None, description="Additional health message")


class RawResults(BaseModel):
    """Raw query response from a backend before wrapping."""

    total_hits: int = Field(default=0, description="Total number of matching documents")
    documents: list[dict[str, Any]] = Field(default_factory=list, description="Raw hits of the requested page")
    aggregations: dict[str, Any] = Field(default_factory=dict, description="Raw aggregation results by name")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Backend-specific metadata")
    took_ms: int = Field(default=0, description="Backend query execution time in ms")


class IndexBackend(ABC):
    """Abstract base class for index backends.

    Backends are shared, reusable, and hold no transaction state: each
    call is a single atomic engine-side operation. Connection pooling and
    configuration are handled during initialization.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique backend name (e.g., 'opensearch', 'memory')."""

    @abstractmethod
    async def initialize(self) -> None:
        """Open connections. Called once during startup."""

    @abstractmethod
    async def shutdown(self) -> None:
        """Close connections and release resources."""

    @abstractmethod
    async def create_schema(self, document_type: str, mapping: dict[str, Any]) -> None:
        """Register the field mapping for a document type.

        Calling this again with the same mapping is a no-op.

        Raises:
            SchemaError: If the mapping is malformed or rejected.
        """

    @abstractmethod
    async def upsert(
        self,
        document_type: str,
        doc_id: str,
        body: dict[str, Any],
        expected: DocumentVersion | None = None,
        create_only: bool = False,
    ) -> DocumentVersion:
        """Create or replace a document.

        Args:
            document_type: Logical document type.
            doc_id: Document identifier.
            body: Document source.
            expected: Version the caller last read; the write fails if the
                stored document has moved on.
            create_only: Fail if a document with this id already exists.

        Returns:
            The version of the document after the write.

        Raises:
            VersionConflictError: If ``expected``/``create_only`` do not hold.
        """

    @abstractmethod
    async def remove(self, document_type: str, doc_id: str) -> bool:
        """Delete a document. Removing an absent id is not an error.

        Returns:
            True if a document was deleted, False if none existed.
        """

    @abstractmethod
    async def get_by_id(self, document_type: str, doc_id: str) -> dict[str, Any]:
        """Fetch a stored document.

        Returns:
            A hit-shaped dict with ``_id``, ``_source``, ``_version``,
            ``_seq_no`` and ``_primary_term``.

        Raises:
            DocumentNotFoundError: If the document does not exist.
        """

    @abstractmethod
    async def query(self, document_type: str, query: EngineQuery) -> RawResults:
        """Execute an engine-native query."""

    @abstractmethod
    async def health_check(self) -> BackendHealth:
        """Check the health of the search engine."""

    async def fetch_version(self, document_type: str, doc_id: str) -> tuple[dict[str, Any], DocumentVersion]:
        """Fetch a stored document together with its concurrency token."""
        raw = await self.get_by_id(document_type, doc_id)
        return raw, version_from_hit(raw)


def version_from_hit(raw: dict[str, Any]) -> DocumentVersion:
    """Extract the concurrency token from an engine write/get response."""
    return DocumentVersion(
        version=int(raw.get("_version", 0)),
        seq_no=raw.get("_seq_no"),
        primary_term=raw.get("_primary_term"),
    )
