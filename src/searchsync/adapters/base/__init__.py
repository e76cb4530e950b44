"""Base backend interface — Abstract classes for search engine connectors."""

from searchsync.adapters.base.adapter import IndexBackend
from searchsync.adapters.base.registry import BackendRegistry

__all__ = ["BackendRegistry", "IndexBackend"]
