"""Tests for the backend registry."""

from __future__ import annotations

import pytest

from searchsync.adapters.base.exceptions import ConfigurationError
from searchsync.adapters.base.registry import BackendRegistry
from searchsync.adapters.memory.adapter import MemoryBackend


class TestBackendRegistry:
    def test_builtins_registered(self) -> None:
        assert BackendRegistry.with_builtins().registered_backends == ["opensearch", "memory"]

    async def test_initialize_and_get(self) -> None:
        registry = BackendRegistry()
        registry.register("memory", MemoryBackend)
        backend = await registry.initialize_backend("memory")
        assert registry.get("memory") is backend
        assert (await backend.health_check()).status == "healthy"

    async def test_unknown_backend(self) -> None:
        with pytest.raises(ConfigurationError, match="Available backends"):
            await BackendRegistry().initialize_backend("solr")

    def test_get_uninitialized(self) -> None:
        registry = BackendRegistry.with_builtins()
        with pytest.raises(ConfigurationError, match="not initialized"):
            registry.get("memory")

    async def test_shutdown_all(self) -> None:
        registry = BackendRegistry.with_builtins()
        backend = await registry.initialize_backend("memory")
        await registry.shutdown_all()
        assert registry.active_backends == []
        assert (await backend.health_check()).status == "unhealthy"
