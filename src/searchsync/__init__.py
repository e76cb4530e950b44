"""searchsync — Keeps a search index consistent with a record store and queries it."""

from searchsync.core.engine import SearchSyncEngine
from searchsync.models.query import SearchRequest
from searchsync.models.record import Record

__version__ = "0.1.0"

__all__ = ["Record", "SearchRequest", "SearchSyncEngine", "__version__"]
