"""Backend Registry — Maps backend names to classes and builds instances from configuration."""

from __future__ import annotations

import logging
from typing import Any

from searchsync.adapters.base.adapter import IndexBackend
from searchsync.adapters.base.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class BackendRegistry:
    """Registry for index backend classes and their live instances.

    Example:
        >>> registry = BackendRegistry.with_builtins()
        >>> backend = await registry.initialize_backend("opensearch", hosts=[...])
        >>> registry.get("opensearch") is backend
        True
    """

    def __init__(self) -> None:
        self._classes: dict[str, type[IndexBackend]] = {}
        self._instances: dict[str, IndexBackend] = {}

    @classmethod
    def with_builtins(cls) -> BackendRegistry:
        """Create a registry with the bundled backends registered."""
        from searchsync.adapters.memory.adapter import MemoryBackend
        from searchsync.adapters.opensearch.adapter import OpenSearchBackend

        registry = cls()
        registry.register("opensearch", OpenSearchBackend)
        registry.register("memory", MemoryBackend)
        return registry

    def register(self, name: str, backend_class: type[IndexBackend]) -> None:
        """Register a backend class under a name."""
        if name in self._classes:
            logger.warning("Overwriting existing backend registration: %s", name)
        self._classes[name] = backend_class
        logger.debug("Registered backend: %s", name)

    async def initialize_backend(self, name: str, **kwargs: Any) -> IndexBackend:
        """Create and initialize a backend instance.

        Raises:
            ConfigurationError: If no backend is registered under this name.
        """
        if name not in self._classes:
            raise ConfigurationError(
                f"No backend registered with name '{name}'. "
                f"Available backends: {list(self._classes.keys())}"
            )

        backend = self._classes[name](**kwargs)
        await backend.initialize()
        self._instances[name] = backend
        logger.info("Initialized backend: %s", name)
        return backend

    def get(self, name: str) -> IndexBackend:
        """Get an initialized backend instance by name.

        Raises:
            ConfigurationError: If the backend is not initialized.
        """
        if name not in self._instances:
            raise ConfigurationError(f"Backend '{name}' is not initialized. Call initialize_backend() first.")
        return self._instances[name]

    async def shutdown_all(self) -> None:
        """Shut down every initialized backend."""
        for name, backend in self._instances.items():
            try:
                await backend.shutdown()
                logger.info("Shut down backend: %s", name)
            except Exception:
                logger.warning("Error shutting down backend: %s", name, exc_info=True)
        self._instances.clear()

    @property
    def registered_backends(self) -> list[str]:
        """List all registered backend names."""
        return list(self._classes.keys())

    @property
    def active_backends(self) -> list[str]:
        """List all initialized backend names."""
        return list(self._instances.keys())
