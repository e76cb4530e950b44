"""Configuration — pydantic-settings models loaded from env vars or YAML."""

from searchsync.config.settings import Settings

__all__ = ["Settings"]
