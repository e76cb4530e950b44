"""Application settings — Pydantic-based configuration with YAML and env var support.

Configuration is loaded from (in order of precedence):
  1. YAML config file (when loaded through ``Settings.from_yaml``)
  2. Environment variables (SEARCHSYNC_ prefix)
  3. ``.env`` file
  4. Default values

Sources are merged per field, so environment variables still fill in
whatever the YAML file leaves out.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings


class EngineSettings(BaseModel):
    """Search engine connection configuration."""

    backend: str = Field(default="opensearch", description="Index backend name: opensearch, memory")
    hosts: list[str] = Field(default_factory=lambda: ["http://localhost:9200"], description="Engine node URLs")
    index_prefix: str = Field(default="", description="Prefix prepended to the document type to form index names")
    username: str | None = Field(default=None, description="Authentication username")
    password: str | None = Field(default=None, description="Authentication password")
    verify_certs: bool = Field(default=True, description="Verify TLS certificates")
    timeout: float = Field(default=10.0, gt=0, description="Per-request timeout in seconds")
    refresh: bool | str = Field(default=False, description="Write refresh policy: false, true or 'wait_for'")
    extra: dict[str, Any] = Field(default_factory=dict, description="Backend-specific options")

    @field_validator("hosts", mode="before")
    @classmethod
    def _parse_hosts(cls, v: Any) -> list[str]:
        """Parse hosts from JSON string (env var) or list."""
        if isinstance(v, str):
            import json

            try:
                parsed = json.loads(v)
                if isinstance(parsed, list):
                    return [str(h) for h in parsed]
            except (json.JSONDecodeError, TypeError):
                pass
            # Comma-separated or single host
            return [h.strip() for h in v.split(",") if h.strip()]
        return list(v)

    def backend_kwargs(self) -> dict[str, Any]:
        """Constructor arguments for the configured backend."""
        if self.backend == "memory":
            return dict(self.extra)
        return {
            "hosts": self.hosts,
            "index_prefix": self.index_prefix,
            "username": self.username,
            "password": self.password,
            "verify_certs": self.verify_certs,
            "timeout": self.timeout,
            "refresh": self.refresh,
            **self.extra,
        }


class IndexSettings(BaseModel):
    """Naming of the indexed entity.

    The document type is derived from these once, at schema registration.
    """

    namespace: str = Field(default="Spree", description="Owning namespace of the entity")
    entity: str = Field(default="Product", description="Logical entity name")


class SyncSettings(BaseModel):
    """Index synchronization behavior."""

    conflict_retries: int = Field(default=1, ge=0, description="Re-read and retry attempts after a version conflict")


class SearchSettings(BaseModel):
    """Query behavior configuration."""

    default_page_size: int = Field(default=25, ge=1, description="Hits per page when the request sets none")
    max_page_size: int = Field(default=100, ge=1, description="Upper bound on requested page size")
    taxon_facet_size: int = Field(default=50, ge=1, description="Maximum buckets in the taxons facet")


class ObservabilitySettings(BaseModel):
    """Observability configuration."""

    log_level: str = Field(default="info", description="Log level: debug, info, warning, error")
    log_format: str = Field(default="json", description="Log format: json, console")


class Settings(BaseSettings):
    """Root application settings.

    Configuration is loaded from environment variables with the SEARCHSYNC_ prefix.
    Nested settings use double underscores.

    Example:
        SEARCHSYNC_ENGINE__HOSTS=["http://search-1:9200","http://search-2:9200"]
        SEARCHSYNC_ENGINE__REFRESH=wait_for
        SEARCHSYNC_SYNC__CONFLICT_RETRIES=1
    """

    model_config = {
        "env_prefix": "SEARCHSYNC_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    app_name: str = Field(default="searchsync", description="Application name")

    engine: EngineSettings = Field(default_factory=EngineSettings)
    index: IndexSettings = Field(default_factory=IndexSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Settings:
        """Load settings from a YAML configuration file.

        Args:
            path: Path to the YAML config file.

        Returns:
            Populated Settings instance.
        """
        import yaml  # type: ignore[import-untyped]

        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)
