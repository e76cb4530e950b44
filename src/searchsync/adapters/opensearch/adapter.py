"""OpenSearch backend — Index synchronization and search for OpenSearch (v2+).

OpenSearch is an AWS-maintained fork of Elasticsearch with a compatible
query DSL and API surface. This backend uses ``opensearch-py`` (async)
and maps every logical index operation onto a single engine call:

  - ``create_schema`` → ``indices.create`` / ``indices.put_mapping``
  - ``upsert``        → ``index`` guarded by ``if_seq_no``/``if_primary_term``
  - ``remove``        → ``delete`` (404 tolerated)
  - ``get_by_id``     → ``get``
  - ``query``         → ``search`` with aggregations

Each document type lives in its own index named
``<index_prefix><document_type>``.
"""

from __future__ import annotations

import logging
import time
from datetime import UTC, datetime
from typing import Any

from opensearchpy import AsyncOpenSearch
from opensearchpy import exceptions as os_exc

from searchsync.adapters.base.adapter import BackendHealth, IndexBackend, RawResults, version_from_hit
from searchsync.adapters.base.exceptions import (
    AdapterError,
    ConnectionError,
    DocumentNotFoundError,
    QueryError,
    SchemaError,
    TransientEngineError,
    VersionConflictError,
)
from searchsync.models.document import DocumentVersion
from searchsync.models.query import EngineQuery

logger = logging.getLogger(__name__)


class OpenSearchBackend(IndexBackend):
    """Index backend for OpenSearch (v2+).

    Args:
        hosts: List of OpenSearch node URLs.
        index_prefix: Prefix prepended to every document type to form the index name.
        username: Optional HTTP basic-auth username.
        password: Optional HTTP basic-auth password.
        verify_certs: Whether to verify TLS certificates.
        timeout: Per-request timeout in seconds.
        refresh: Refresh policy for writes (``False``, ``True`` or ``"wait_for"``).
        **kwargs: Additional keyword arguments forwarded to ``AsyncOpenSearch``.
    """

    def __init__(
        self,
        hosts: list[str] | None = None,
        index_prefix: str = "",
        username: str | None = None,
        password: str | None = None,
        verify_certs: bool = True,
        timeout: float = 10.0,
        refresh: bool | str = False,
        **kwargs: Any,
    ) -> None:
        self._hosts = hosts or ["https://localhost:9200"]
        self._index_prefix = index_prefix
        self._username = username
        self._password = password
        self._verify_certs = verify_certs
        self._timeout = timeout
        self._refresh = refresh
        self._extra_kwargs = kwargs
        self._client: Any = None

    @property
    def name(self) -> str:
        return "opensearch"

    async def initialize(self) -> None:
        """Create and verify the ``AsyncOpenSearch`` client."""
        client_kwargs: dict[str, Any] = {
            "hosts": self._hosts,
            "verify_certs": self._verify_certs,
            "ssl_show_warn": False,
            "timeout": self._timeout,
        }
        if self._username and self._password:
            client_kwargs["http_auth"] = (self._username, self._password)

        client_kwargs.update(self._extra_kwargs)

        self._client = AsyncOpenSearch(**client_kwargs)
        try:
            info = await self._client.info()
        except os_exc.TransportError as e:
            await self.shutdown()
            raise ConnectionError(f"Failed to connect to OpenSearch: {e}") from e

        version = info.get("version", {}).get("number", "unknown")
        cluster = info.get("cluster_name", "unknown")
        logger.info("Connected to OpenSearch cluster: %s (v%s)", cluster, version)

    async def shutdown(self) -> None:
        """Close the OpenSearch client."""
        if self._client:
            await self._client.close()
            self._client = None

    # ── Schema ───────────────────────────────────────────────────────────

    async def create_schema(self, document_type: str, mapping: dict[str, Any]) -> None:
        """Create the index for ``document_type`` or update its mapping."""
        client = self._require_client()
        index = self.index_name(document_type)
        try:
            if await client.indices.exists(index=index):
                await client.indices.put_mapping(index=index, body=mapping)
                logger.info("Updated mapping of index %s", index)
                return
            try:
                await client.indices.create(index=index, body={"mappings": mapping})
                logger.info("Created index %s", index)
            except os_exc.RequestError as e:
                if e.error != "resource_already_exists_exception":
                    raise
                # Another worker created it first.
                await client.indices.put_mapping(index=index, body=mapping)
        except os_exc.RequestError as e:
            raise SchemaError(f"OpenSearch rejected mapping for '{index}': {e.info or e}") from e
        except os_exc.TransportError as e:
            raise self._translate_error(e, "schema registration") from e

    # ── Writes ───────────────────────────────────────────────────────────

    async def upsert(
        self,
        document_type: str,
        doc_id: str,
        body: dict[str, Any],
        expected: DocumentVersion | None = None,
        create_only: bool = False,
    ) -> DocumentVersion:
        """Index ``body`` under ``doc_id`` with optimistic concurrency control."""
        client = self._require_client()
        params: dict[str, Any] = {}
        if expected is not None and expected.seq_no is not None:
            params["if_seq_no"] = expected.seq_no
            params["if_primary_term"] = expected.primary_term
        if create_only:
            params["op_type"] = "create"
        if self._refresh:
            params["refresh"] = self._refresh

        try:
            response = await client.index(index=self.index_name(document_type), id=doc_id, body=body, **params)
        except os_exc.ConflictError as e:
            raise VersionConflictError(f"Stale write rejected for document '{doc_id}'.") from e
        except os_exc.TransportError as e:
            raise self._translate_error(e, "upsert") from e

        return version_from_hit(response)

    async def remove(self, document_type: str, doc_id: str) -> bool:
        """Delete ``doc_id``; an absent document is reported, not raised."""
        client = self._require_client()
        params: dict[str, Any] = {"refresh": self._refresh} if self._refresh else {}
        try:
            await client.delete(index=self.index_name(document_type), id=doc_id, **params)
        except os_exc.NotFoundError:
            return False
        except os_exc.TransportError as e:
            raise self._translate_error(e, "remove") from e
        return True

    # ── Reads ────────────────────────────────────────────────────────────

    async def get_by_id(self, document_type: str, doc_id: str) -> dict[str, Any]:
        """Retrieve a single document by ID."""
        client = self._require_client()
        try:
            response = await client.get(index=self.index_name(document_type), id=doc_id)
        except os_exc.NotFoundError as e:
            raise DocumentNotFoundError(f"Document '{doc_id}' not found.") from e
        except os_exc.TransportError as e:
            raise self._translate_error(e, "get") from e

        if not response.get("found", True):
            raise DocumentNotFoundError(f"Document '{doc_id}' not found.")
        return dict(response)

    async def query(self, document_type: str, query: EngineQuery) -> RawResults:
        """Execute a search request against the document type's index."""
        client = self._require_client()
        try:
            start = time.monotonic()
            response = await client.search(index=self.index_name(document_type), body=query.body)
            took_ms = int((time.monotonic() - start) * 1000)
        except os_exc.NotFoundError as e:
            raise QueryError(f"Index for '{document_type}' does not exist; run schema setup first.") from e
        except os_exc.TransportError as e:
            raise self._translate_error(e, "query") from e

        hits = response.get("hits", {})
        total = hits.get("total", 0)
        if isinstance(total, dict):
            total = total.get("value", 0)

        return RawResults(
            total_hits=total,
            documents=list(hits.get("hits", [])),
            aggregations=dict(response.get("aggregations", {})),
            metadata={"took_os_ms": response.get("took", 0)},
            took_ms=took_ms,
        )

    # ── Health ───────────────────────────────────────────────────────────

    async def health_check(self) -> BackendHealth:
        """Check OpenSearch cluster health."""
        if not self._client:
            return BackendHealth(status="unhealthy", message="Client not initialized")

        try:
            start = time.monotonic()
            health = await self._client.cluster.health()
            latency_ms = int((time.monotonic() - start) * 1000)
        except os_exc.TransportError as e:
            return BackendHealth(status="unhealthy", message=str(e))

        status_map = {"green": "healthy", "yellow": "degraded", "red": "unhealthy"}
        return BackendHealth(
            status=status_map.get(health.get("status", "red"), "unhealthy"),
            latency_ms=latency_ms,
            last_check=datetime.now(UTC).isoformat(),
            message=f"Cluster: {health.get('cluster_name')}, Nodes: {health.get('number_of_nodes')}",
        )

    # ── Helpers ──────────────────────────────────────────────────────────

    def index_name(self, document_type: str) -> str:
        """Return the physical index holding ``document_type``."""
        return f"{self._index_prefix}{document_type}"

    def _require_client(self) -> Any:
        if not self._client:
            raise ConnectionError("OpenSearch client not initialized.")
        return self._client

    @staticmethod
    def _translate_error(e: os_exc.TransportError, action: str) -> AdapterError:
        """Classify a transport failure as transient or permanent."""
        if isinstance(e, os_exc.ConnectionError):
            return TransientEngineError(f"OpenSearch {action} failed: {e}")
        status = e.status_code
        if isinstance(status, int) and (status == 429 or status >= 500):
            return TransientEngineError(f"OpenSearch {action} failed with HTTP {status}: {e}")
        return QueryError(f"OpenSearch {action} failed: {e}")
