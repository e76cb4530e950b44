"""Backend-specific exceptions.

Every error raised at the index boundary carries a ``retryable`` flag so
callers can tell "retry is safe" (transient) from "do not retry"
(conflict, not-found, schema).
"""

from __future__ import annotations


class AdapterError(Exception):
    """Base exception for index backend errors."""

    retryable: bool = False


class TransientEngineError(AdapterError):
    """Raised on network failures, timeouts or engine unavailability."""

    retryable = True


class ConnectionError(TransientEngineError):
    """Raised when the backend cannot connect to the search engine."""


class DocumentNotFoundError(AdapterError):
    """Raised when a requested document does not exist."""


class VersionConflictError(AdapterError):
    """Raised when the engine rejects a write made against a stale version."""


class IndexConflictError(AdapterError):
    """Raised when an upsert keeps losing the optimistic-version race."""

    def __init__(self, record_id: object, attempts: int) -> None:
        self.record_id = record_id
        self.attempts = attempts
        super().__init__(f"Version conflict on record '{record_id}' persisted after {attempts} attempt(s).")


class QueryError(AdapterError):
    """Raised when the engine rejects a search or write request."""


class SchemaError(AdapterError):
    """Raised when the index mapping is malformed or cannot be registered."""


class ConfigurationError(AdapterError):
    """Raised when backend configuration is invalid."""
