"""Tests for the OpenSearch backend."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from opensearchpy import exceptions as os_exc

from searchsync.adapters.base.exceptions import (
    ConnectionError,
    DocumentNotFoundError,
    QueryError,
    SchemaError,
    TransientEngineError,
    VersionConflictError,
)
from searchsync.adapters.opensearch.adapter import OpenSearchBackend
from searchsync.models.document import DocumentVersion
from searchsync.models.query import EngineQuery

# ── Fixtures ──────────────────────────────────────────────────────────────────


@pytest.fixture
def backend() -> OpenSearchBackend:
    return OpenSearchBackend(
        hosts=["https://localhost:9200"],
        index_prefix="test-",
    )


@pytest.fixture
def client(backend: OpenSearchBackend) -> MagicMock:
    mock_client = MagicMock()
    mock_client.index = AsyncMock(return_value={"_version": 2, "_seq_no": 7, "_primary_term": 1, "result": "updated"})
    mock_client.delete = AsyncMock(return_value={"result": "deleted"})
    mock_client.get = AsyncMock()
    mock_client.search = AsyncMock()
    mock_client.close = AsyncMock()
    mock_client.indices = MagicMock()
    mock_client.indices.exists = AsyncMock(return_value=False)
    mock_client.indices.create = AsyncMock()
    mock_client.indices.put_mapping = AsyncMock()
    mock_client.cluster = MagicMock()
    backend._client = mock_client
    return mock_client


@pytest.fixture
def search_response() -> dict[str, Any]:
    """Sample OpenSearch search response with aggregations."""
    return {
        "took": 4,
        "hits": {
            "total": {"value": 12, "relation": "eq"},
            "hits": [
                {"_index": "test-spree_product", "_id": "1", "_score": None, "_source": {"name": "Product 1"}},
            ],
        },
        "aggregations": {
            "price": {"count": 12, "min": 1.0, "max": 9.0, "avg": 5.0, "sum": 60.0},
            "taxons": {"buckets": [{"key": "3", "doc_count": 12}]},
        },
    }


# ── Properties / lifecycle ───────────────────────────────────────────────────


class TestOpenSearchBackendProperties:
    def test_name(self, backend: OpenSearchBackend) -> None:
        assert backend.name == "opensearch"

    def test_default_hosts(self) -> None:
        assert OpenSearchBackend()._hosts == ["https://localhost:9200"]

    def test_index_name(self, backend: OpenSearchBackend) -> None:
        assert backend.index_name("spree_product") == "test-spree_product"


class TestOpenSearchInitialization:
    async def test_initialize_connects(self) -> None:
        backend = OpenSearchBackend(username="u", password="p")
        mock_client = MagicMock()
        mock_client.info = AsyncMock(return_value={"cluster_name": "c", "version": {"number": "2.11.0"}})
        with patch("searchsync.adapters.opensearch.adapter.AsyncOpenSearch", return_value=mock_client) as factory:
            await backend.initialize()
        assert factory.call_args.kwargs["http_auth"] == ("u", "p")
        assert backend._client is mock_client

    async def test_initialize_failure_raises_connection_error(self) -> None:
        backend = OpenSearchBackend()
        mock_client = MagicMock()
        mock_client.info = AsyncMock(side_effect=os_exc.ConnectionError("N/A", "refused", Exception("refused")))
        mock_client.close = AsyncMock()
        with patch("searchsync.adapters.opensearch.adapter.AsyncOpenSearch", return_value=mock_client):
            with pytest.raises(ConnectionError):
                await backend.initialize()
        mock_client.close.assert_called_once()
        assert backend._client is None

    async def test_shutdown_closes_client(self, backend: OpenSearchBackend, client: MagicMock) -> None:
        await backend.shutdown()
        client.close.assert_called_once()
        assert backend._client is None

    async def test_not_initialized_raises(self, backend: OpenSearchBackend) -> None:
        with pytest.raises(ConnectionError, match="not initialized"):
            await backend.get_by_id("spree_product", "1")


# ── Schema ───────────────────────────────────────────────────────────────────


class TestOpenSearchSchema:
    async def test_creates_missing_index(self, backend: OpenSearchBackend, client: MagicMock) -> None:
        await backend.create_schema("spree_product", {"properties": {}})
        client.indices.create.assert_called_once_with(index="test-spree_product", body={"mappings": {"properties": {}}})

    async def test_updates_existing_index(self, backend: OpenSearchBackend, client: MagicMock) -> None:
        client.indices.exists.return_value = True
        await backend.create_schema("spree_product", {"properties": {}})
        client.indices.put_mapping.assert_called_once()
        client.indices.create.assert_not_called()

    async def test_create_race_falls_back_to_put_mapping(self, backend: OpenSearchBackend, client: MagicMock) -> None:
        client.indices.create.side_effect = os_exc.RequestError(400, "resource_already_exists_exception", {})
        await backend.create_schema("spree_product", {"properties": {}})
        client.indices.put_mapping.assert_called_once()

    async def test_rejected_mapping(self, backend: OpenSearchBackend, client: MagicMock) -> None:
        client.indices.create.side_effect = os_exc.RequestError(400, "mapper_parsing_exception", {})
        with pytest.raises(SchemaError):
            await backend.create_schema("spree_product", {"properties": {"x": {"type": "bogus"}}})


# ── Writes ───────────────────────────────────────────────────────────────────


class TestOpenSearchWrites:
    async def test_upsert_returns_version(self, backend: OpenSearchBackend, client: MagicMock) -> None:
        version = await backend.upsert("spree_product", "1", {"name": "a"})
        assert version == DocumentVersion(version=2, seq_no=7, primary_term=1)
        client.index.assert_called_once_with(index="test-spree_product", id="1", body={"name": "a"})

    async def test_upsert_passes_concurrency_token(self, backend: OpenSearchBackend, client: MagicMock) -> None:
        expected = DocumentVersion(version=1, seq_no=3, primary_term=1)
        await backend.upsert("spree_product", "1", {"name": "a"}, expected=expected)
        kwargs = client.index.call_args.kwargs
        assert kwargs["if_seq_no"] == 3
        assert kwargs["if_primary_term"] == 1

    async def test_create_only(self, backend: OpenSearchBackend, client: MagicMock) -> None:
        await backend.upsert("spree_product", "1", {"name": "a"}, create_only=True)
        assert client.index.call_args.kwargs["op_type"] == "create"

    async def test_refresh_policy(self, client: MagicMock) -> None:
        backend = OpenSearchBackend(refresh="wait_for")
        backend._client = client
        await backend.upsert("spree_product", "1", {})
        await backend.remove("spree_product", "1")
        assert client.index.call_args.kwargs["refresh"] == "wait_for"
        assert client.delete.call_args.kwargs["refresh"] == "wait_for"

    async def test_conflict(self, backend: OpenSearchBackend, client: MagicMock) -> None:
        client.index.side_effect = os_exc.ConflictError(409, "version_conflict_engine_exception", {})
        with pytest.raises(VersionConflictError):
            await backend.upsert("spree_product", "1", {})

    async def test_remove_absent_is_not_error(self, backend: OpenSearchBackend, client: MagicMock) -> None:
        client.delete.side_effect = os_exc.NotFoundError(404, "not_found", {})
        assert await backend.remove("spree_product", "1") is False

    async def test_remove_existing(self, backend: OpenSearchBackend, client: MagicMock) -> None:
        assert await backend.remove("spree_product", "1") is True

    async def test_unavailable_is_transient(self, backend: OpenSearchBackend, client: MagicMock) -> None:
        client.index.side_effect = os_exc.TransportError(503, "unavailable_shards_exception", {})
        with pytest.raises(TransientEngineError):
            await backend.upsert("spree_product", "1", {})

    async def test_timeout_is_transient(self, backend: OpenSearchBackend, client: MagicMock) -> None:
        client.delete.side_effect = os_exc.ConnectionTimeout("TIMEOUT", "timed out", Exception("timed out"))
        with pytest.raises(TransientEngineError) as exc_info:
            await backend.remove("spree_product", "1")
        assert exc_info.value.retryable


# ── Reads ────────────────────────────────────────────────────────────────────


class TestOpenSearchReads:
    async def test_get_found(self, backend: OpenSearchBackend, client: MagicMock) -> None:
        client.get.return_value = {"_id": "1", "_version": 4, "_seq_no": 9, "_primary_term": 1, "found": True, "_source": {}}
        raw, token = await backend.fetch_version("spree_product", "1")
        assert raw["_id"] == "1"
        assert token.version == 4
        assert token.seq_no == 9

    async def test_get_not_found(self, backend: OpenSearchBackend, client: MagicMock) -> None:
        client.get.side_effect = os_exc.NotFoundError(404, "not_found", {})
        with pytest.raises(DocumentNotFoundError):
            await backend.get_by_id("spree_product", "1")

    async def test_query(self, backend: OpenSearchBackend, client: MagicMock, search_response: dict) -> None:
        client.search.return_value = search_response
        query = EngineQuery(body={"query": {"match_all": {}}}, offset=0, limit=1)
        raw = await backend.query("spree_product", query)
        client.search.assert_called_once_with(index="test-spree_product", body=query.body)
        assert raw.total_hits == 12
        assert len(raw.documents) == 1
        assert raw.aggregations["taxons"]["buckets"][0]["key"] == "3"

    async def test_query_legacy_total(self, backend: OpenSearchBackend, client: MagicMock) -> None:
        client.search.return_value = {"hits": {"total": 3, "hits": []}}
        raw = await backend.query("spree_product", EngineQuery(body={}))
        assert raw.total_hits == 3

    async def test_query_bad_request(self, backend: OpenSearchBackend, client: MagicMock) -> None:
        client.search.side_effect = os_exc.RequestError(400, "parsing_exception", {})
        with pytest.raises(QueryError):
            await backend.query("spree_product", EngineQuery(body={}))

    async def test_query_missing_index(self, backend: OpenSearchBackend, client: MagicMock) -> None:
        client.search.side_effect = os_exc.NotFoundError(404, "index_not_found_exception", {})
        with pytest.raises(QueryError, match="schema setup"):
            await backend.query("spree_product", EngineQuery(body={}))


# ── Health ───────────────────────────────────────────────────────────────────


class TestOpenSearchHealth:
    async def test_health_not_initialized(self, backend: OpenSearchBackend) -> None:
        assert (await backend.health_check()).status == "unhealthy"

    async def test_health_healthy(self, backend: OpenSearchBackend, client: MagicMock) -> None:
        client.cluster.health = AsyncMock(
            return_value={"status": "green", "cluster_name": "test-cluster", "number_of_nodes": 3}
        )
        health = await backend.health_check()
        assert health.status == "healthy"
        assert "test-cluster" in (health.message or "")

    async def test_health_yellow_is_degraded(self, backend: OpenSearchBackend, client: MagicMock) -> None:
        client.cluster.health = AsyncMock(return_value={"status": "yellow"})
        assert (await backend.health_check()).status == "degraded"

    async def test_health_exception(self, backend: OpenSearchBackend, client: MagicMock) -> None:
        client.cluster.health = AsyncMock(side_effect=os_exc.ConnectionError("N/A", "refused", Exception()))
        assert (await backend.health_check()).status == "unhealthy"
