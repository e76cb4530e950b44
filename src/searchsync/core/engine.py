"""SearchSync Engine — Wires the synchronization and query paths together.

The engine owns the lifecycle of the shared index backend and hands the
same instance to both paths:

  Record mutation → [IndexSynchronizer] → (mapper + visibility) → backend
  SearchRequest   → [QueryBuilder] → backend.query → [SearchResult]

The backend is built once from explicit settings; nothing is looked up
from ambient state.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable, Iterable
from typing import TYPE_CHECKING

from searchsync.adapters.base.adapter import BackendHealth, IndexBackend
from searchsync.adapters.base.exceptions import ConnectionError
from searchsync.adapters.base.registry import BackendRegistry
from searchsync.core.mapper import DocumentMapper, document_type_name
from searchsync.core.query_builder import QueryBuilder
from searchsync.core.results import SearchResult
from searchsync.core.synchronizer import Clock, IndexSynchronizer, RecordLoader
from searchsync.models.document import IndexDocument
from searchsync.models.query import SearchRequest
from searchsync.models.record import Record, RecordId
from searchsync.models.sync import ReindexStats, SyncOutcome

if TYPE_CHECKING:
    from searchsync.config.settings import Settings

logger = logging.getLogger(__name__)


class SearchSyncEngine:
    """Facade over the index synchronizer and the query path.

    Args:
        settings: Application configuration.
        backend: Pre-built backend; when omitted one is created from
            ``settings.engine`` during ``initialize``.
        record_loader: Passed to the synchronizer for conflict retries.
        clock: Passed to the synchronizer for visibility checks.

    Attributes:
        document_type: Document type derived from ``settings.index``.
        mapper: Document mapper for that type.
        query_builder: Request translator.
    """

    def __init__(
        self,
        settings: Settings,
        backend: IndexBackend | None = None,
        *,
        record_loader: RecordLoader | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.settings = settings
        self.document_type = document_type_name(settings.index.entity, settings.index.namespace)
        self.mapper = DocumentMapper(self.document_type)
        self.query_builder = QueryBuilder(
            default_page_size=settings.search.default_page_size,
            max_page_size=settings.search.max_page_size,
            taxon_facet_size=settings.search.taxon_facet_size,
        )
        self.registry = BackendRegistry.with_builtins()
        self._backend = backend
        self._owns_backend = backend is None
        self._record_loader = record_loader
        self._clock = clock
        self._synchronizer: IndexSynchronizer | None = None

    async def initialize(self, setup_schema: bool = True) -> None:
        """Connect the backend and (optionally) register the schema.

        Calling it again on an initialized engine is a no-op.
        """
        if self._synchronizer is not None:
            return
        if self._backend is None:
            self._backend = await self.registry.initialize_backend(
                self.settings.engine.backend,
                **self.settings.engine.backend_kwargs(),
            )
        else:
            await self._backend.initialize()

        self._synchronizer = IndexSynchronizer(
            self._backend,
            self.mapper,
            record_loader=self._record_loader,
            conflict_retries=self.settings.sync.conflict_retries,
            clock=self._clock,
        )
        if setup_schema:
            await self._synchronizer.setup_schema()
        logger.info("SearchSync engine initialized (backend=%s, type=%s)", self._backend.name, self.document_type)

    async def shutdown(self) -> None:
        """Release the backend."""
        if self._owns_backend:
            await self.registry.shutdown_all()
            self._backend = None
        elif self._backend is not None:
            await self._backend.shutdown()
        self._synchronizer = None
        logger.info("SearchSync engine shut down")

    async def __aenter__(self) -> SearchSyncEngine:
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.shutdown()

    @property
    def backend(self) -> IndexBackend:
        if self._backend is None:
            raise ConnectionError("Engine not initialized. Call initialize() first.")
        return self._backend

    @property
    def synchronizer(self) -> IndexSynchronizer:
        if self._synchronizer is None:
            raise ConnectionError("Engine not initialized. Call initialize() first.")
        return self._synchronizer

    # ── Synchronization ──────────────────────────────────────────────────

    async def setup_schema(self) -> None:
        await self.synchronizer.setup_schema()

    async def on_mutation(self, record: Record) -> SyncOutcome:
        return await self.synchronizer.on_mutation(record)

    async def on_deletion(self, record_id: RecordId) -> SyncOutcome:
        return await self.synchronizer.on_deletion(record_id)

    async def reindex(self, records: Iterable[Record] | AsyncIterable[Record]) -> ReindexStats:
        return await self.synchronizer.reindex(records)

    # ── Query ────────────────────────────────────────────────────────────

    async def get(self, record_id: RecordId) -> IndexDocument:
        """Fetch an indexed document; raises ``DocumentNotFoundError`` when absent."""
        return await self.synchronizer.get(record_id)

    async def search(self, request: SearchRequest | None = None) -> SearchResult:
        """Run a search. With no request every visible document is returned, sorted by name.

        Raises:
            TransientEngineError: If the engine is unreachable; no partial
                result is returned.
            QueryError: If the engine rejects the query.
        """
        request = request or SearchRequest()
        query = self.query_builder.build(request)
        raw = await self.backend.query(self.document_type, query)
        logger.debug(
            "Search on %s matched %d documents (page %d, %d ms)",
            self.document_type,
            raw.total_hits,
            request.page,
            raw.took_ms,
        )
        return SearchResult(raw, self.mapper, page=request.page, page_size=query.limit)

    async def health_check(self) -> BackendHealth:
        if self._backend is None:
            return BackendHealth(status="unhealthy", message="Engine not initialized")
        return await self._backend.health_check()
