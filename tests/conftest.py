"""Shared test fixtures and configuration."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from searchsync.adapters.memory.adapter import MemoryBackend
from searchsync.config.settings import Settings
from searchsync.core.engine import SearchSyncEngine
from searchsync.core.mapper import DocumentMapper
from searchsync.core.synchronizer import IndexSynchronizer
from searchsync.models.record import Record

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def settings() -> Settings:
    """Create a test Settings instance backed by the in-memory engine."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        engine={"backend": "memory"},
    )


@pytest.fixture
def make_record() -> Callable[..., Record]:
    """Build an available product record, overriding any attribute."""
    counter = iter(range(1, 10_000))

    def _make(**overrides: Any) -> Record:
        record_id = overrides.pop("id", next(counter))
        data: dict[str, Any] = {
            "id": record_id,
            "name": f"Product #{record_id}",
            "available_from": NOW - timedelta(days=1),
            "price": "19.99",
        }
        data.update(overrides)
        return Record(**data)

    return _make


@pytest.fixture
async def backend() -> AsyncIterator[MemoryBackend]:
    b = MemoryBackend()
    await b.initialize()
    yield b
    await b.shutdown()


@pytest.fixture
def mapper() -> DocumentMapper:
    return DocumentMapper("spree_product")


@pytest.fixture
async def synchronizer(backend: MemoryBackend, mapper: DocumentMapper) -> IndexSynchronizer:
    sync = IndexSynchronizer(backend, mapper, clock=lambda: NOW)
    await sync.setup_schema()
    return sync


@pytest.fixture
async def engine(settings: Settings) -> AsyncIterator[SearchSyncEngine]:
    e = SearchSyncEngine(settings, MemoryBackend(), clock=lambda: NOW)
    await e.initialize()
    yield e
    await e.shutdown()
