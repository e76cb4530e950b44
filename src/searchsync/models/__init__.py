"""Data models — records, index documents, search requests and results."""

from searchsync.models.document import DocumentVersion, IndexDocument
from searchsync.models.facet import Facet, FacetStats, FacetType
from searchsync.models.query import EngineQuery, SearchRequest
from searchsync.models.record import Record, RecordId
from searchsync.models.sync import ReindexStats, SyncAction, SyncOutcome

__all__ = [
    "DocumentVersion",
    "EngineQuery",
    "Facet",
    "FacetStats",
    "FacetType",
    "IndexDocument",
    "Record",
    "RecordId",
    "ReindexStats",
    "SearchRequest",
    "SyncAction",
    "SyncOutcome",
]
