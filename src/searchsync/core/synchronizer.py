"""Index synchronizer — Keeps the index consistent with the record store.

The record store calls ``on_mutation`` after every committed create or
update and ``on_deletion`` after every committed hard delete. For each
notification the synchronizer re-evaluates visibility and applies exactly
one index operation:

    visible      → conditional upsert (engine optimistic concurrency)
    not visible  → idempotent removal

No document state is cached between calls; ordering between concurrent
writers of the same id is enforced by the engine's per-document version,
so the synchronizer can run in any number of workers. Removals leave a
tombstone document (``<type>_tombstone``) carrying the removal time, which
keeps redelivered older snapshots from re-creating a removed document.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable, Awaitable, Callable, Iterable
from datetime import UTC, datetime

from searchsync.adapters.base.adapter import IndexBackend
from searchsync.adapters.base.exceptions import (
    DocumentNotFoundError,
    IndexConflictError,
    TransientEngineError,
    VersionConflictError,
)
from searchsync.core.mapper import DocumentMapper
from searchsync.core.visibility import is_visible
from searchsync.models.document import DocumentVersion, IndexDocument
from searchsync.models.record import Record, RecordId
from searchsync.models.sync import ReindexStats, SyncAction, SyncOutcome

logger = logging.getLogger(__name__)

RecordLoader = Callable[[RecordId], Awaitable[Record | None]]
Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class IndexSynchronizer:
    """Applies record lifecycle notifications to the index.

    Args:
        backend: Shared index backend.
        mapper: Document mapper for the synchronized entity.
        record_loader: Re-reads the committed state of a record after a
            version conflict; returns None if the record no longer exists.
            Without a loader the conflicting snapshot is retried only if its
            ``updated_at`` is not older than the indexed state.
        conflict_retries: Number of re-read-and-retry rounds before a
            conflict is surfaced as ``IndexConflictError``.
        clock: Source of the current time for visibility checks.
    """

    def __init__(
        self,
        backend: IndexBackend,
        mapper: DocumentMapper,
        *,
        record_loader: RecordLoader | None = None,
        conflict_retries: int = 1,
        clock: Clock | None = None,
    ) -> None:
        self._backend = backend
        self._mapper = mapper
        self._record_loader = record_loader
        self._conflict_retries = conflict_retries
        self._clock = clock or _utcnow

    @property
    def document_type(self) -> str:
        return self._mapper.document_type

    async def setup_schema(self) -> None:
        """Register the document and tombstone schemas with the engine (idempotent)."""
        await self._backend.create_schema(self.document_type, self._mapper.schema())
        await self._backend.create_schema(self._mapper.tombstone_type, self._mapper.tombstone_schema())
        logger.info("Schema registered for document type %s", self.document_type)

    # ── Notifications ────────────────────────────────────────────────────

    async def on_mutation(self, record: Record) -> SyncOutcome:
        """Reconcile the index with a freshly committed record state.

        Raises:
            IndexConflictError: If the upsert still conflicts after the
                configured retries, or the snapshot is older than what the
                index already reflects.
            TransientEngineError: If the engine is unreachable; the call
                is idempotent and may be retried.
        """
        snapshot = record
        attempt = 1
        while True:
            if not is_visible(snapshot, self._clock()):
                return await self._remove(snapshot.id, attempts=attempt, removed_at=snapshot.updated_at)

            try:
                version = await self._write(self._mapper.to_document(snapshot))
            except VersionConflictError as e:
                if attempt > self._conflict_retries:
                    logger.error(
                        "Version conflict on %s/%s persisted after %d attempts",
                        self.document_type,
                        snapshot.id,
                        attempt,
                    )
                    raise IndexConflictError(snapshot.id, attempt) from e
                logger.warning(
                    "Version conflict on %s/%s (attempt %d), re-reading record",
                    self.document_type,
                    snapshot.id,
                    attempt,
                )
                try:
                    reloaded = await self._reload(snapshot)
                except VersionConflictError as stale:
                    logger.error("Refusing to retry stale snapshot of %s/%s", self.document_type, snapshot.id)
                    raise IndexConflictError(snapshot.id, attempt) from stale
                attempt += 1
                if reloaded is None:
                    return await self._remove(snapshot.id, attempts=attempt, removed_at=self._clock())
                snapshot = reloaded
                continue

            logger.info("Indexed %s/%s at version %d", self.document_type, snapshot.id, version.version)
            return SyncOutcome(
                record_id=str(snapshot.id),
                action=SyncAction.INDEXED,
                version=version.version,
                attempts=attempt,
            )

    async def on_deletion(self, record_id: RecordId) -> SyncOutcome:
        """Remove a hard-deleted record from the index (idempotent)."""
        return await self._remove(record_id, attempts=1, removed_at=self._clock())

    # ── Reads / bulk ─────────────────────────────────────────────────────

    async def get(self, record_id: RecordId) -> IndexDocument:
        """Fetch the indexed document of a record.

        Raises:
            DocumentNotFoundError: If the record is not indexed.
        """
        raw = await self._backend.get_by_id(self.document_type, str(record_id))
        return self._mapper.from_hit(raw)

    async def reindex(self, records: Iterable[Record] | AsyncIterable[Record]) -> ReindexStats:
        """Re-synchronize every given record.

        Conflicts and transient engine failures are counted and logged so a
        single record does not abort the run; any other error propagates.
        """
        stats = ReindexStats()
        async for record in _aiter(records):
            try:
                stats.record(await self.on_mutation(record))
            except (IndexConflictError, TransientEngineError):
                logger.warning("Reindex of %s/%s failed", self.document_type, record.id, exc_info=True)
                stats.fail(str(record.id))

        logger.info(
            "Reindex of %s finished: indexed=%d removed=%d failed=%d",
            self.document_type,
            stats.indexed,
            stats.removed,
            stats.failed,
        )
        return stats

    # ── Helpers ──────────────────────────────────────────────────────────

    async def _write(self, document: IndexDocument) -> DocumentVersion:
        """Upsert guarded by the version of the currently indexed document.

        An absent document is created only if the record was not removed
        after the snapshot was taken.
        """
        body = document.to_source()
        try:
            current, token = await self._backend.fetch_version(self.document_type, document.id)
        except DocumentNotFoundError:
            removed_at = await self._removed_at(document.id)
            if removed_at and document.updated_at and removed_at > document.updated_at:
                raise VersionConflictError(f"'{document.id}' was removed after this snapshot was taken.") from None
            return await self._backend.upsert(self.document_type, document.id, body, create_only=True)

        indexed_at = self._mapper.from_hit(current).updated_at
        if indexed_at and document.updated_at and indexed_at > document.updated_at:
            raise VersionConflictError(f"Index already holds a newer snapshot of '{document.id}'.")
        return await self._backend.upsert(self.document_type, document.id, body, expected=token)

    async def _remove(self, record_id: RecordId, attempts: int, removed_at: datetime | None) -> SyncOutcome:
        if removed_at is not None:
            await self._mark_removed(str(record_id), removed_at)
        existed = await self._backend.remove(self.document_type, str(record_id))
        if existed:
            logger.info("Removed %s/%s from index", self.document_type, record_id)
        else:
            logger.debug("%s/%s already absent from index", self.document_type, record_id)
        return SyncOutcome(
            record_id=str(record_id),
            action=SyncAction.REMOVED,
            existed=existed,
            attempts=attempts,
        )

    async def _mark_removed(self, doc_id: str, removed_at: datetime) -> None:
        """Record the removal time so older snapshots cannot re-create the document."""
        tombstone_type = self._mapper.tombstone_type
        for _ in range(self._conflict_retries + 1):
            try:
                current, token = await self._backend.fetch_version(tombstone_type, doc_id)
            except DocumentNotFoundError:
                current, token = None, None
            if current is not None:
                previous = self._mapper.tombstone_time(current)
                if previous is not None and previous >= removed_at:
                    return
            try:
                await self._backend.upsert(
                    tombstone_type,
                    doc_id,
                    self._mapper.to_tombstone(removed_at),
                    expected=token,
                    create_only=token is None,
                )
                return
            except VersionConflictError:
                logger.debug("Concurrent removal of %s/%s, re-reading tombstone", self.document_type, doc_id)
        logger.warning("Could not record removal time of %s/%s", self.document_type, doc_id)

    async def _removed_at(self, doc_id: str) -> datetime | None:
        try:
            hit = await self._backend.get_by_id(self._mapper.tombstone_type, doc_id)
        except DocumentNotFoundError:
            return None
        return self._mapper.tombstone_time(hit)

    async def _indexed_at(self, doc_id: str) -> datetime | None:
        """Timestamp of the latest state the index knows for ``doc_id``."""
        try:
            current, _ = await self._backend.fetch_version(self.document_type, doc_id)
        except DocumentNotFoundError:
            return await self._removed_at(doc_id)
        return self._mapper.from_hit(current).updated_at

    async def _reload(self, snapshot: Record) -> Record | None:
        """Return the state to retry with after a conflict.

        Without a loader the snapshot is retried only when it is provably
        not older than what the index holds.

        Raises:
            VersionConflictError: If the snapshot cannot be shown current.
        """
        if self._record_loader is not None:
            return await self._record_loader(snapshot.id)
        indexed_at = await self._indexed_at(str(snapshot.id))
        if snapshot.updated_at is None or indexed_at is None or snapshot.updated_at < indexed_at:
            raise VersionConflictError(f"Cannot re-read '{snapshot.id}'; the indexed state may be newer.")
        return snapshot


async def _aiter(records: Iterable[Record] | AsyncIterable[Record]):
    if isinstance(records, AsyncIterable):
        async for record in records:
            yield record
    else:
        for record in records:
            yield record
