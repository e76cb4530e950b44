"""Integration test fixtures — a live OpenSearch node.

Expects OpenSearch to be running, e.g.:
    docker run -p 9201:9200 -e discovery.type=single-node \
        -e DISABLE_SECURITY_PLUGIN=true opensearchproject/opensearch:2

Each test gets a fresh index.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import AsyncIterator

import httpx
import pytest

from searchsync.config.settings import Settings
from searchsync.core.engine import SearchSyncEngine

OPENSEARCH_HOST = "http://localhost:9201"


def _wait_for_service(url: str, timeout: float = 60.0) -> bool:
    """Block until *url* returns HTTP 200, or timeout."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        try:
            r = httpx.get(url, timeout=10)
            if r.status_code == 200:
                return True
        except httpx.HTTPError:
            pass
        time.sleep(2)
    return False


@pytest.fixture(scope="session")
def opensearch_ready() -> str:
    """Ensure OpenSearch is running."""
    if not _wait_for_service(OPENSEARCH_HOST, timeout=10.0):
        pytest.skip(f"OpenSearch not available at {OPENSEARCH_HOST}")
    return OPENSEARCH_HOST


@pytest.fixture
async def live_engine(opensearch_ready: str) -> AsyncIterator[SearchSyncEngine]:
    prefix = f"it-{uuid.uuid4().hex[:8]}-"
    settings = Settings(
        _env_file=None,  # type: ignore[call-arg]
        engine={"backend": "opensearch", "hosts": [opensearch_ready], "index_prefix": prefix, "refresh": "wait_for"},
    )
    engine = SearchSyncEngine(settings)
    await engine.initialize()
    yield engine
    async with httpx.AsyncClient(base_url=opensearch_ready, timeout=30) as client:
        for document_type in (engine.document_type, engine.mapper.tombstone_type):
            await client.delete(f"/{prefix}{document_type}", params={"ignore_unavailable": "true"})
    await engine.shutdown()
