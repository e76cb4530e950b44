"""Core synchronization and query components."""

from searchsync.core.engine import SearchSyncEngine
from searchsync.core.mapper import DocumentMapper, document_type_name
from searchsync.core.query_builder import QueryBuilder
from searchsync.core.results import SearchResult
from searchsync.core.synchronizer import IndexSynchronizer
from searchsync.core.visibility import is_visible

__all__ = [
    "DocumentMapper",
    "IndexSynchronizer",
    "QueryBuilder",
    "SearchResult",
    "SearchSyncEngine",
    "document_type_name",
    "is_visible",
]
